#!/usr/bin/env python3
"""
One-time script to create an admin user
Usage: crimesleuth-create-admin

Non-interactive mode for cloud providers:
  Provide these environment variables and run the script once:
    ADMIN_NAME
    ADMIN_EMAIL
    ADMIN_PASSWORD

If any of the environment variables are missing, the script will prompt
interactively (useful for local development).
"""
import os
import sys
from dotenv import load_dotenv
from sqlalchemy.exc import SQLAlchemyError
from .db import SessionLocal, create_tables
from .models.user import User, UserRole
from .core.security import get_password_hash


def create_admin_user() -> int:
    """Create initial admin user"""
    load_dotenv()
    if os.path.exists("/etc/secrets/admin.env"):
        load_dotenv("/etc/secrets/admin.env")

    create_tables()

    db = SessionLocal()
    try:
        existing_admin = db.query(User).filter(User.role == UserRole.ADMIN).first()
        if existing_admin:
            print(f"Admin user already exists: {existing_admin.email}")
            return 0

        # Try env vars first (non-interactive mode)
        name = os.getenv("ADMIN_NAME", "").strip()
        email = os.getenv("ADMIN_EMAIL", "").strip()
        password = os.getenv("ADMIN_PASSWORD", "").strip()

        if not all([name, email, password]) and not sys.stdin.isatty():
            def mask(v: str) -> str:
                return "<set>" if v else "<missing>"
            print("Admin seeding (non-interactive) - env var status:")
            print(f"  ADMIN_NAME: {mask(name)}")
            print(f"  ADMIN_EMAIL: {mask(email)}")
            print(f"  ADMIN_PASSWORD: {mask(password)}")
            print("One or more admin environment variables are missing. Aborting without prompts.")
            return 1

        if not all([name, email, password]):
            print("Environment variables not fully provided; falling back to prompts...")
            name = name or input("Admin name: ").strip()
            email = email or input("Admin email: ").strip()
            password = password or input("Admin password: ").strip()

        if not all([name, email, password]):
            print("All fields are required!")
            return 1

        admin_user = User(
            name=name,
            email=email,
            role=UserRole.ADMIN,
            password_hash=get_password_hash(password)
        )
        db.add(admin_user)
        db.commit()
        db.refresh(admin_user)

        print("Admin user created successfully!")
        print(f"ID: {admin_user.id}")
        print(f"Name: {admin_user.name}")
        print(f"Email: {admin_user.email}")
        print(f"Role: {admin_user.role.value}")
        return 0

    except SQLAlchemyError as e:
        print(f"Error creating admin user: {e}")
        db.rollback()
        return 1
    finally:
        db.close()


def main():
    sys.exit(create_admin_user())


if __name__ == "__main__":
    main()
