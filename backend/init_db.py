# =============================================================================
# AgriMarket Backend
# init_db.py - Database Initialization Script
#
# Run this script to initialize the database with tables and seed data.
# Usage: python init_db.py [--reset]
# =============================================================================

import os
import sys

# Add the backend directory to the path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from app import create_app
from extensions import db, bcrypt
from models import User, utcnow
from services.password_policy import add_to_password_history

ADMIN_EMAIL = os.getenv('ADMIN_EMAIL', 'admin@agrimarket.com')
ADMIN_PASSWORD = os.getenv('ADMIN_PASSWORD', 'Admin#2024Secure')


def seed_admin():
    """
    Create the default admin account if it does not exist.

    Returns:
        bool: True if a new admin was created
    """
    if User.query.filter_by(email=ADMIN_EMAIL).first():
        return False

    password_hash = bcrypt.generate_password_hash(ADMIN_PASSWORD).decode('utf-8')
    admin = User(
        email=ADMIN_EMAIL,
        password_hash=password_hash,
        first_name='Admin',
        last_name='User',
        role='admin',
        account_level='premium',
        is_active=True,
        password_changed_at=utcnow()
    )
    db.session.add(admin)
    db.session.flush()
    add_to_password_history(admin, password_hash)
    db.session.commit()
    return True


def init_database(app=None):
    """
    Create all tables and seed the default admin user.
    """
    app = app or create_app()

    with app.app_context():
        db.create_all()
        print("Database tables created successfully")

        if seed_admin():
            print(f"Admin user created (email: {ADMIN_EMAIL})")
            print("Please change the admin password in production!")
        else:
            print("Admin user already exists")


def reset_database():
    """
    Drop all tables and reinitialize the database.

    WARNING: This will delete all data!
    """
    app = create_app()

    with app.app_context():
        confirm = input("This will DELETE ALL DATA. Type 'yes' to confirm: ")

        if confirm.lower() != 'yes':
            print("Operation cancelled")
            return

        db.drop_all()
        print("All tables dropped")

    init_database(app)


if __name__ == '__main__':
    if len(sys.argv) > 1 and sys.argv[1] == '--reset':
        reset_database()
    else:
        init_database()
