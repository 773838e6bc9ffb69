import sys
import os
import random
from sqlalchemy.orm import Session
from decimal import Decimal
from uuid import uuid4
from faker import Faker

# Add the project root to the Python path
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from src.db.core import session_local, UserDB, UserStatus, BankDataDB, AllocationType, IncomeSource
from src.crud.crud_user import hash_password
from src.services import coordinator

fake = Faker()

BANKS = [
    # Conventional
    ("BNI", "PT. BANK NEGARA INDONESIA (PERSERO)"),
    ("MANDIRI", "PT. BANK MANDIRI (PERSERO) TBK."),
    ("BCA", "PT. BANK CENTRAL ASIA TBK."),
    ("BRI", "PT. BANK RAKYAT INDONESIA (PERSERO)"),
    ("CIMB", "PT. BANK CIMB NIAGA TBK."),
    ("PERMATA", "PT. BANK PERMATA TBK."),
    ("DANAMON", "PT. BANK DANAMON INDONESIA TBK."),
    ("MEGA", "PT. BANK MEGA TBK."),
    ("PANIN", "PT. BANK PANIN TBK."),
    ("HSBC", "PT. BANK HSBC INDONESIA"),
    ("SINARMAS", "PT. BANK SINARMAS TBK."),
    # Syariah
    ("BSI", "PT. BANK SYARIAH INDONESIA TBK."),
    ("MUAMALAT", "PT. BANK MUAMALAT INDONESIA TBK."),
    ("BCA SYARIAH", "PT. BANK BCA SYARIAH"),
    # Digital
    ("BANK JAGO", "PT. BANK JAGO TBK."),
    ("BLU", "blu by BCA (Bank Digital BCA)"),
    ("SEABANK", "SeaBank Indonesia"),
    ("JENIUS", "Jenius (BTPN Digital Banking)"),
    # E-wallets
    ("OVO", "OVO"),
    ("DANA", "Dana"),
    ("GOPAY", "GO-PAY"),
    ("SHOPEEPAY", "ShopeePay"),
]


def seed_banks(db: Session) -> int:
    """Insert catalog entries that are not there yet. Returns how many were added."""
    existing = {code for (code,) in db.query(BankDataDB.code_name).all()}
    added = 0
    for code_name, bank_name in BANKS:
        if code_name in existing:
            continue
        db.add(BankDataDB(code_name=code_name, bank_name=bank_name))
        added += 1
    db.commit()
    return added


def seed_demo_users(db: Session, count: int = 3):
    """
    Demo users walking the 1 -> 2 -> 3 account path with random balances.
    """
    banks = db.query(BankDataDB).order_by(BankDataDB.id).all()

    for i in range(count):
        user = UserDB(
            id=uuid4(),
            full_name=fake.name(),
            email=fake.unique.email(),
            username=fake.unique.user_name(),
            password_hash=hash_password("demo-password"),
            status=random.choice(list(UserStatus)),
        )
        db.add(user)
        db.commit()

        first_bank, second_bank, third_bank = random.sample(banks, k=3)

        coordinator.add_account(db, user.db_id, first_bank.id, AllocationType.KEBUTUHAN, Decimal("0"))
        first_account = coordinator.accounts_snapshot(db, user.db_id)[0]
        coordinator.update_account_balance(
            db, user.db_id, first_account.id, AllocationType.KEBUTUHAN,
            Decimal(random.randrange(1_000_000, 6_000_000, 50_000))
        )
        kebutuhan = next(a for a in first_account.allocations if a.type.value == "Kebutuhan")
        coordinator.record_income(
            db, user.db_id, kebutuhan.id, Decimal(random.randrange(500_000, 3_000_000, 50_000)),
            income_source=IncomeSource.GAJI, note="Gaji"
        )

        coordinator.add_account(
            db, user.db_id, second_bank.id, AllocationType.TABUNGAN,
            Decimal(random.randrange(500_000, 10_000_000, 100_000))
        )
        coordinator.add_account(
            db, user.db_id, third_bank.id, AllocationType.DARURAT,
            Decimal(random.randrange(200_000, 5_000_000, 100_000))
        )
        print(f"Demo user {i+1}/{count} ({user.email}) seeded with 3 accounts.")


def seed_database(with_demo_users: bool = False):
    db: Session = session_local()

    try:
        added = seed_banks(db)
        print(f"{added} bank catalog entries added.")

        if with_demo_users:
            seed_demo_users(db)

        print("Successfully seeded database.")

    except Exception as e:
        print(f"An error occurred: {e}")
        import traceback
        traceback.print_exc()
        db.rollback()
    finally:
        db.close()

if __name__ == "__main__":
    seed_database(with_demo_users="--demo" in sys.argv)
