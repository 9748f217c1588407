import argparse
import getpass
import sys
import os
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from app import create_app
from models import db
from models.user import User, ADMIN, SUPER_ADMIN


def create_admin(email, name, password, role=ADMIN):
    app = create_app()
    with app.app_context():
        db.create_all()
        email = email.strip().lower()
        user = User.query.filter_by(email=email).first()
        if user:
            user.role = role
            user.is_active = True
            user.set_password(password)
            print(f"🔄 Updated existing user {email} -> {role}")
        else:
            user = User(email=email, name=name, role=role)
            user.set_password(password)
            db.session.add(user)
            print(f"✅ Created {role}: {email}")
        db.session.commit()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create or promote a portal administrator")
    parser.add_argument("email")
    parser.add_argument("--name", default="Administrator")
    parser.add_argument("--super", action="store_true", help="create a SUPER_ADMIN instead of ADMIN")
    args = parser.parse_args()

    password = getpass.getpass("Password: ")
    if len(password) < 8:
        sys.exit("❌ Password must be at least 8 characters")

    create_admin(args.email, args.name, password, SUPER_ADMIN if args.super else ADMIN)
