"""Startup seeding: the nutritionist account and the food reference table.

Called from the application lifespan. Safe to call repeatedly: the admin is
only created when no admin role exists, and foods are only inserted into an
empty table.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from app import auth_service
from app.db_models import Food
from app.gateway import Table
from app.policies import SERVICE

logger = logging.getLogger(__name__)

# (food_name, category, kcal/100g, protein/100g, carbs/100g, fat/100g,
#  common serving, kcal/serving)
INDIAN_FOODS: list[tuple[str, str, int, float, float, float, str, int]] = [
    # Rice & breads
    ("Basmati Rice (cooked)", "Grains", 130, 2.7, 28.0, 0.3, "1 cup (158g)", 205),
    ("Chapati/Roti", "Breads", 297, 11.0, 52.0, 4.5, "1 piece (40g)", 119),
    ("Naan", "Breads", 310, 9.0, 51.0, 7.0, "1 piece (90g)", 279),
    ("Paratha (plain)", "Breads", 321, 6.9, 38.0, 15.0, "1 piece (60g)", 193),
    ("Puri", "Breads", 501, 6.8, 42.0, 34.0, "1 piece (20g)", 100),
    ("Idli", "Breakfast", 66, 2.1, 14.0, 0.4, "1 piece (50g)", 33),
    ("Dosa (plain)", "Breakfast", 168, 3.9, 28.0, 3.7, "1 piece (60g)", 101),
    # Curries & gravies
    ("Chicken Tikka Masala", "Curry", 140, 12.0, 5.0, 8.0, "1 cup (240g)", 336),
    ("Butter Chicken", "Curry", 160, 13.0, 6.0, 10.0, "1 cup (240g)", 384),
    ("Paneer Butter Masala", "Curry", 180, 11.0, 8.0, 12.0, "1 cup (240g)", 432),
    ("Dal Tadka", "Lentils", 105, 7.0, 17.0, 1.5, "1 cup (240g)", 252),
    ("Palak Paneer", "Curry", 135, 9.0, 7.0, 8.0, "1 cup (240g)", 324),
    ("Aloo Gobi", "Curry", 95, 2.5, 15.0, 2.5, "1 cup (200g)", 190),
    ("Chole (Chickpea Curry)", "Curry", 120, 6.0, 18.0, 3.0, "1 cup (240g)", 288),
    ("Rajma", "Lentils", 110, 7.5, 19.0, 0.5, "1 cup (240g)", 264),
    # Snacks
    ("Samosa", "Snacks", 262, 3.5, 25.0, 17.0, "1 piece (50g)", 131),
    ("Pakora", "Snacks", 280, 5.0, 22.0, 19.0, "1 cup (100g)", 280),
    ("Bhel Puri", "Snacks", 180, 4.0, 32.0, 4.0, "1 cup (100g)", 180),
    ("Pani Puri", "Snacks", 30, 1.0, 6.0, 0.5, "1 piece (15g)", 5),
    # Desserts
    ("Gulab Jamun", "Desserts", 375, 4.0, 53.0, 15.0, "1 piece (40g)", 150),
    ("Jalebi", "Desserts", 415, 1.5, 70.0, 13.0, "1 piece (30g)", 125),
    ("Kheer", "Desserts", 130, 3.5, 21.0, 3.5, "1 cup (200g)", 260),
    ("Rasgulla", "Desserts", 186, 4.0, 35.0, 3.5, "1 piece (50g)", 93),
    # Vegetables
    ("Baingan Bharta", "Vegetables", 105, 2.0, 9.0, 7.0, "1 cup (200g)", 210),
    ("Bhindi Masala", "Vegetables", 85, 2.5, 12.0, 3.0, "1 cup (180g)", 153),
    ("Mixed Vegetable Curry", "Vegetables", 95, 3.0, 14.0, 3.5, "1 cup (200g)", 190),
    # Beverages
    ("Lassi (Sweet)", "Beverages", 85, 3.0, 13.0, 2.5, "1 glass (250ml)", 213),
    ("Masala Chai", "Beverages", 40, 1.5, 6.0, 1.5, "1 cup (200ml)", 80),
    # Rice dishes
    ("Chicken Biryani", "Rice", 180, 11.0, 25.0, 4.5, "1 cup (200g)", 360),
    ("Veg Biryani", "Rice", 150, 3.5, 28.0, 3.0, "1 cup (200g)", 300),
    ("Pulao", "Rice", 140, 3.0, 26.0, 2.5, "1 cup (200g)", 280),
]


async def seed_foods(db: AsyncSession) -> int:
    """Insert the reference foods when the table is empty.

    Returns:
        Number of rows inserted (0 when the table already had data).
    """
    foods = Table(db, SERVICE, Food)
    if await foods.count() > 0:
        logger.info("Food table already seeded; skipping.")
        return 0

    rows = [
        {
            "food_name": name,
            "category": category,
            "calories_per_100g": kcal,
            "protein_per_100g": protein,
            "carbs_per_100g": carbs,
            "fat_per_100g": fat,
            "common_serving_size": serving,
            "common_serving_calories": serving_kcal,
        }
        for name, category, kcal, protein, carbs, fat, serving, serving_kcal in INDIAN_FOODS
    ]
    await foods.insert_many(rows)
    await db.commit()
    logger.info("Seeded %d foods.", len(rows))
    return len(rows)


async def run_seed_if_needed(db: AsyncSession) -> None:
    await auth_service.bootstrap_admin(db)
    await seed_foods(db)
