from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI

from .logging_config import setup_logging
from .routers.users import router as users_router
from .routers.banks import router as banks_router
from .routers.accounts import router as accounts_router
from .routers.allocations import router as allocations_router
from .routers.expenses import router as expenses_router
from .routers.incomes import router as incomes_router
from .routers.budgets import router as budgets_router, monthly_router as monthly_expenses_router

logger = setup_logging()

app = FastAPI(title="Bucketwise API")


app.include_router(users_router)
app.include_router(banks_router)
app.include_router(accounts_router)
app.include_router(allocations_router)
app.include_router(expenses_router)
app.include_router(incomes_router)
app.include_router(budgets_router)
app.include_router(monthly_expenses_router)


@app.get("/")
def read_root():
    return "Server is running."
