"""
Default content for an empty store.
"""

import logging

from database import Storage
from models import ProductCreate, SlideCreate

DEFAULT_SLIDES = [
    {
        "title": "أحدث الإلكترونيات بأسعار مميزة",
        "title_fr": "Les dernières nouveautés électroniques",
        "subtitle": "جودة وضمان",
        "subtitle_fr": "Qualité et garantie",
        "description": "أفضل المنتجات الإلكترونية الأصلية بضمان شامل",
        "button_text": "تصفح المنتجات",
        "button_text_fr": "Voir les produits",
        "image_url": "https://images.unsplash.com/photo-1550009158-9ebf69173e03?auto=format&fit=crop&w=1920&q=80",
        "link_url": "/products",
        "sort_order": 1,
    },
    {
        "title": "توصيل سريع لجميع الولايات",
        "title_fr": "Livraison rapide dans toutes les wilayas",
        "subtitle": "خدمة توصيل متميزة",
        "description": "يصلك طلبك أينما كنت في أسرع وقت ممكن",
        "button_text": "اطلب الآن",
        "button_text_fr": "Commander",
        "image_url": "https://images.unsplash.com/photo-1519389950473-47ba0277781c?auto=format&fit=crop&w=1920&q=80",
        "link_url": "/products?category=Laptops",
        "sort_order": 2,
    },
]

SAMPLE_PRODUCTS = [
    {
        "name": "iPhone 15 Pro Max",
        "description": "The ultimate iPhone with titanium design, A17 Pro chip, and our most powerful camera system yet.",
        "category": "Smartphones",
        "price": 250000,
        "old_price": 270000,
        "stock": 10,
        "images": ["/logo.jpg"],
        "specifications": {"Screen": "6.7 inch", "Storage": "256GB", "Color": "Natural Titanium"},
        "is_featured": True,
    },
    {
        "name": "MacBook Pro 14 M3",
        "description": "Mind-blowing. Head-turning. With the M3 chip, MacBook Pro leaps forward.",
        "category": "Laptops",
        "price": 320000,
        "old_price": 340000,
        "stock": 5,
        "images": ["/logo.jpg"],
        "specifications": {"Processor": "M3 Pro", "RAM": "18GB", "SSD": "512GB"},
        "is_featured": True,
    },
    {
        "name": "Sony WH-1000XM5",
        "description": "Industry-leading noise cancellation, exceptional sound quality.",
        "category": "Headphones",
        "price": 55000,
        "old_price": 60000,
        "stock": 20,
        "images": ["/logo.jpg"],
        "specifications": {"Battery": "30 hours", "Type": "Wireless Noise Cancelling"},
        "is_featured": False,
    },
    {
        "name": "PlayStation 5 Slim",
        "description": "Play Like Never Before. The PS5 console unleashes new gaming possibilities.",
        "category": "Gaming",
        "price": 95000,
        "old_price": 105000,
        "stock": 8,
        "images": ["/logo.jpg"],
        "specifications": {"Storage": "1TB", "Edition": "Digital"},
        "is_featured": True,
    },
]


def seed_default_data(storage: Storage):
    if not storage.list_slides():
        for slide in DEFAULT_SLIDES:
            storage.create_slide(SlideCreate(**slide))
        logging.info(f"SYSTEM: {len(DEFAULT_SLIDES)} slides par defaut ajoutees")
    if not storage.list_products():
        for product in SAMPLE_PRODUCTS:
            storage.create_product(ProductCreate(**product))
        logging.info(f"SYSTEM: {len(SAMPLE_PRODUCTS)} produits d'exemple ajoutes")
