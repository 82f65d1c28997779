# create_admin.py
import sys

from backend.app import crud, models, schemas
from backend.app.config import settings
from backend.app.database import SessionLocal, engine
from backend.app.errors import Conflict

if not settings.ADMIN_PASSWORD:
    print("Set ADMIN_PASSWORD (and optionally ADMIN_NAME / ADMIN_EMAIL) before running this script.")
    sys.exit(1)

# make sure tables exist
models.Base.metadata.create_all(bind=engine)

db = SessionLocal()
admin_in = schemas.UserCreate(name=settings.ADMIN_NAME, email=settings.ADMIN_EMAIL, password=settings.ADMIN_PASSWORD)
try:
    crud.create_user(db, admin_in, role=models.Role.admin)
    print("✅ Admin user created successfully!")
    print(f"   Email: {settings.ADMIN_EMAIL}")
except Conflict:
    print(f"Account {settings.ADMIN_EMAIL} already exists, nothing to do.")
finally:
    db.close()
