"""Seed script — populates the database with staff, clients and open orders."""

import asyncio
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from vipauto.database.engine import async_session_factory, init_db
from vipauto.models.client import Client
from vipauto.models.order import Order
from vipauto.models.user import Role, User
from vipauto.services.auth import hash_password

# Development credentials only.
SAMPLE_USERS = [
    ("Chief.Orlov", "Орлов", Role.DIRECTOR, "director"),
    ("Senior.Vlad", "Владимир Ч.", Role.SENIOR_MASTER, "senior"),
    ("Master.Vladimir", "Владимир А.", Role.MASTER, "master"),
    ("Master.Andrey", "Андрей", Role.MASTER, "master"),
    ("Master.Danila", "Данила", Role.MASTER, "master"),
]

SAMPLE_CLIENTS = [
    Client(id="client-1", name="Иван Петров", phone="+79123456789",
           car_model="Lada Vesta", license_plate="А123ВС77"),
    Client(id="client-2", name="Сергей Смирнов", phone="+79234567890",
           car_model="Toyota Camry", license_plate="В456ЕК777"),
    Client(id="client-3", name="Анна Кузнецова", phone="+79345678901",
           car_model="Ford Focus", license_plate="С789МН99"),
]

SAMPLE_ORDERS = [
    Order(id="ord-1", master_name="Владимир А.", car_model="Lada Vesta",
          license_plate="А123ВС77", description="Замена масла", amount=Decimal("1500"),
          payment_type="Картой", client_id="client-1", client_name="Иван Петров",
          client_phone="+79123456789"),
    Order(id="ord-2", master_name="Андрей", car_model="Toyota Camry",
          license_plate="В456ЕК777", description="Шиномонтаж", amount=Decimal("3000"),
          payment_type="Наличные", client_id="client-2", client_name="Сергей Смирнов",
          client_phone="+79234567890"),
    Order(id="ord-3", master_name="Данила", car_model="Ford Focus",
          license_plate="С789МН99", description="Диагностика", amount=Decimal("1000"),
          payment_type="Перевод", client_id="client-3", client_name="Анна Кузнецова",
          client_phone="+79345678901"),
]


async def seed() -> None:
    """Insert sample staff, clients and orders into the database."""
    await init_db()
    async with async_session_factory() as session:
        session: AsyncSession
        for login, name, role, password in SAMPLE_USERS:
            session.add(
                User(login=login, name=name, role=role, password_hash=hash_password(password))
            )
        session.add_all(SAMPLE_CLIENTS)
        await session.flush()
        session.add_all(SAMPLE_ORDERS)
        await session.commit()
    print(
        f"✅ Seeded {len(SAMPLE_USERS)} users, {len(SAMPLE_CLIENTS)} clients "
        f"and {len(SAMPLE_ORDERS)} orders into the database."
    )


if __name__ == "__main__":
    asyncio.run(seed())
