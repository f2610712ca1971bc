"""
Relational backend (SQLAlchemy): SQLite for development, PostgreSQL in production.
"""

import logging

from sqlalchemy import (
    JSON, Boolean, DateTime, Float, Index, Integer, String, Text,
    create_engine, select, text, update,
)
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from database import Storage, price_order_lines, utcnow
from errors import ConflictError, InsufficientStockError, NotFoundError
from models import Order, OrderStatus, Product, Slide, User


class Base(DeclarativeBase):
    pass


class UserRow(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    username: Mapped[str] = mapped_column(String(150), unique=True, nullable=False)
    password: Mapped[str] = mapped_column(Text, nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="user")
    created_at = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    # at most one admin
    __table_args__ = (
        Index(
            "uq_users_single_admin", "role", unique=True,
            sqlite_where=text("role = 'admin'"),
            postgresql_where=text("role = 'admin'"),
        ),
    )


class ProductRow(Base):
    __tablename__ = "products"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    name_fr = mapped_column(Text)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    description_fr = mapped_column(Text)
    category: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    price: Mapped[float] = mapped_column(Float, nullable=False)
    old_price = mapped_column(Float)
    stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    images = mapped_column(JSON, nullable=False)
    specifications = mapped_column(JSON)
    is_featured: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


class OrderRow(Base):
    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    customer_name: Mapped[str] = mapped_column(Text, nullable=False)
    phone: Mapped[str] = mapped_column(String(50), nullable=False)
    wilaya: Mapped[str] = mapped_column(Text, nullable=False)
    commune = mapped_column(Text)
    address: Mapped[str] = mapped_column(Text, nullable=False)
    total_price: Mapped[float] = mapped_column(Float, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=OrderStatus.PENDING.value)
    items = mapped_column(JSON, nullable=False)
    created_at = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


class SlideRow(Base):
    __tablename__ = "slides"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    title_fr = mapped_column(Text)
    subtitle = mapped_column(Text)
    subtitle_fr = mapped_column(Text)
    description = mapped_column(Text)
    description_fr = mapped_column(Text)
    button_text = mapped_column(Text)
    button_text_fr = mapped_column(Text)
    image_url: Mapped[str] = mapped_column(Text, nullable=False)
    link_url: Mapped[str] = mapped_column(Text, nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


class ConfigDocumentRow(Base):
    """One JSON document per key, used by config_store.SqlConfigBackend."""
    __tablename__ = "config_documents"

    key: Mapped[str] = mapped_column(String(50), primary_key=True)
    document = mapped_column(JSON)
    updated_at = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)


def make_engine(url: str):
    if url.startswith("sqlite") and url.rstrip("/") in ("sqlite:", "sqlite:///:memory:"):
        # a single shared connection, otherwise every session sees an empty database
        return create_engine(url, connect_args={"check_same_thread": False}, poolclass=StaticPool)
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(url, pool_pre_ping=True)


class SqlStorage(Storage):
    def __init__(self, url: str):
        self.engine = make_engine(url)
        Base.metadata.create_all(self.engine)
        self.Session = sessionmaker(self.engine, expire_on_commit=False)
        logging.info(f"SYSTEM: Connexion base de donnees {self.engine.url.render_as_string(hide_password=True)}")

    # --- users ---

    def get_user(self, user_id):
        with self.Session() as session:
            row = session.get(UserRow, user_id)
            return User.model_validate(row) if row else None

    def get_admin_user(self):
        with self.Session() as session:
            row = session.scalars(select(UserRow).where(UserRow.role == "admin")).first()
            return User.model_validate(row) if row else None

    def get_user_by_username(self, username):
        with self.Session() as session:
            row = session.scalars(select(UserRow).where(UserRow.username == username)).first()
            return User.model_validate(row) if row else None

    def create_user(self, username, password, role="user"):
        if self.get_user_by_username(username) is not None:
            raise ConflictError("Username already exists")
        try:
            with self.Session.begin() as session:
                row = UserRow(username=username, password=password, role=role)
                session.add(row)
                session.flush()
                return User.model_validate(row)
        except IntegrityError:
            raise ConflictError("An admin account already exists" if role == "admin"
                                else "Username already exists")

    def update_user(self, user_id, password=None, role=None):
        try:
            with self.Session.begin() as session:
                row = session.get(UserRow, user_id)
                if row is None:
                    raise NotFoundError("User not found")
                if password is not None:
                    row.password = password
                if role is not None:
                    row.role = role
                session.flush()
                return User.model_validate(row)
        except IntegrityError:
            raise ConflictError("An admin account already exists")

    # --- products ---

    def list_products(self, category=None, search=None):
        query = select(ProductRow)
        if category:
            query = query.where(ProductRow.category == category)
        if search:
            query = query.where(
                ProductRow.name.icontains(search, autoescape=True)
                | ProductRow.description.icontains(search, autoescape=True)
            )
        query = query.order_by(ProductRow.created_at.desc(), ProductRow.id.desc())
        with self.Session() as session:
            return [Product.model_validate(row) for row in session.scalars(query)]

    def get_product(self, product_id):
        with self.Session() as session:
            row = session.get(ProductRow, product_id)
            return Product.model_validate(row) if row else None

    def create_product(self, data):
        with self.Session.begin() as session:
            row = ProductRow(**data.model_dump(mode="json"))
            session.add(row)
            session.flush()
            product = Product.model_validate(row)
        logging.info(f"CATALOGUE: Ajout produit #{product.id} {product.name} (Qté: {product.stock})")
        return product

    def update_product(self, product_id, updates):
        with self.Session.begin() as session:
            row = session.get(ProductRow, product_id)
            if row is None:
                raise NotFoundError("Product not found")
            merged = Product.model_validate(row).model_dump()
            merged.update(updates.model_dump(exclude_unset=True))
            product = Product.model_validate(merged)
            for field, value in product.model_dump(mode="json", exclude={"id", "created_at"}).items():
                setattr(row, field, value)
        logging.info(f"CATALOGUE: Mise a jour produit #{product_id}")
        return product

    def delete_product(self, product_id):
        with self.Session.begin() as session:
            row = session.get(ProductRow, product_id)
            if row is None:
                raise NotFoundError("Product not found")
            session.delete(row)
        logging.info(f"CATALOGUE: Suppression produit #{product_id}")

    # --- slides ---

    def list_slides(self):
        query = select(SlideRow).order_by(
            SlideRow.sort_order, SlideRow.created_at.desc(), SlideRow.id.desc()
        )
        with self.Session() as session:
            return [Slide.model_validate(row) for row in session.scalars(query)]

    def create_slide(self, data):
        with self.Session.begin() as session:
            row = SlideRow(**data.model_dump())
            session.add(row)
            session.flush()
            return Slide.model_validate(row)

    def update_slide(self, slide_id, updates):
        with self.Session.begin() as session:
            row = session.get(SlideRow, slide_id)
            if row is None:
                raise NotFoundError("Slide not found")
            merged = Slide.model_validate(row).model_dump()
            merged.update(updates.model_dump(exclude_unset=True))
            slide = Slide.model_validate(merged)
            for field, value in slide.model_dump(exclude={"id", "created_at"}).items():
                setattr(row, field, value)
            return slide

    def delete_slide(self, slide_id):
        with self.Session.begin() as session:
            row = session.get(SlideRow, slide_id)
            if row is None:
                raise NotFoundError("Slide not found")
            session.delete(row)

    # --- orders ---

    @staticmethod
    def _decrement(session, product_id: int, quantity: int) -> bool:
        result = session.execute(
            update(ProductRow)
            .where(ProductRow.id == product_id, ProductRow.stock >= quantity)
            .values(stock=ProductRow.stock - quantity)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    def decrement_stock(self, product_id, quantity):
        with self.Session.begin() as session:
            return self._decrement(session, product_id, quantity)

    def create_order_from_cart(self, data, delivery_fee):
        # Any exception inside the block rolls every decrement back.
        with self.Session.begin() as session:
            ids = {line.product_id for line in data.items}
            rows = session.scalars(select(ProductRow).where(ProductRow.id.in_(ids))).all()
            items, subtotal = price_order_lines(data.items, {row.id: row for row in rows})

            for item in items:
                if not self._decrement(session, item.product_id, item.quantity):
                    raise InsufficientStockError(item.product_id)

            row = OrderRow(
                customer_name=data.customer_name,
                phone=data.phone,
                wilaya=data.wilaya,
                commune=(data.commune or "").strip() or None,
                address=data.address,
                total_price=subtotal + delivery_fee,
                status=OrderStatus.PENDING.value,
                items=[item.model_dump(mode="json") for item in items],
            )
            session.add(row)
            session.flush()
            return Order.model_validate(row)

    def list_orders(self):
        query = select(OrderRow).order_by(OrderRow.created_at.desc(), OrderRow.id.desc())
        with self.Session() as session:
            return [Order.model_validate(row) for row in session.scalars(query)]

    def get_order(self, order_id):
        with self.Session() as session:
            row = session.get(OrderRow, order_id)
            return Order.model_validate(row) if row else None

    def update_order_status(self, order_id, status):
        with self.Session.begin() as session:
            row = session.get(OrderRow, order_id)
            if row is None:
                raise NotFoundError("Order not found")
            row.status = OrderStatus(status).value
            session.flush()
            return Order.model_validate(row)
