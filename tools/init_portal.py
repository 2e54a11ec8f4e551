import os, sys
from datetime import datetime, timedelta, timezone

from vpnportal import config
from vpnportal.ca import LocalCa
from vpnportal.storage import Storage
from vpnportal.tls_crypt import load_or_generate

os.makedirs(os.path.dirname(config.DB_PATH) or ".", exist_ok=True)

storage = Storage(config.DB_PATH)
storage.init_db()

load_or_generate(config.TLS_CRYPT_PATH)
LocalCa(config.CA_DIR).ca_cert()

print("Initialized database, tls-crypt key and CA.")

# optional: seed a local user session, e.g. `init_portal.py alice admin,staff`
if len(sys.argv) > 1:
    user_id = sys.argv[1]
    permissions = sys.argv[2].split(",") if len(sys.argv) > 2 else []
    storage.set_user_session(user_id, datetime.now(timezone.utc) + timedelta(days=90), permissions)
    print(f"Seeded session for {user_id} with permissions {permissions}.")
