"""
Database seed script: one demo brand with encrypted Shopify credentials.
Reads SEED_SHOP_DOMAIN, SEED_ACCESS_TOKEN, SEED_WEBHOOK_SECRET from the environment.
"""
import os
from decimal import Decimal

from app.database import SessionLocal, engine, Base
from app import models  # noqa: F401 - register all models with Base
from app.models import Brand
from app.services.credentials import encrypt_token


def seed_database():
    """Seed the database with a demo brand"""
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    shop = os.getenv("SEED_SHOP_DOMAIN", "demo-brand.myshopify.com").strip().lower()
    token = os.getenv("SEED_ACCESS_TOKEN", "")
    secret = os.getenv("SEED_WEBHOOK_SECRET", "")

    try:
        brand = db.query(Brand).filter(Brand.shopify_domain == shop).first()
        if not brand:
            brand = Brand(name="Demo Brand", shopify_domain=shop, commission_rate=Decimal("0.10"))
            db.add(brand)
            print(f"✅ Created brand for {shop}")
        else:
            print(f"✅ Brand for {shop} already exists")
        if token:
            brand.shopify_access_token = encrypt_token(token)
        if secret:
            brand.shopify_webhook_secret = encrypt_token(secret)
        db.commit()
        print(f"   id={brand.id}")
    except Exception as e:
        db.rollback()
        print(f"❌ Seed failed: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    seed_database()
