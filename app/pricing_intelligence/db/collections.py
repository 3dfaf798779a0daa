# app/pricing_intelligence/db/collections.py

"""Typed collection refs (import these elsewhere)"""

from app.pricing_intelligence.db.mongodb import db

user_configurations_col = db["user_configurations"]
fixed_expenses_col = db["fixed_expenses"]
payroll_entries_col = db["payroll_entries"]
sales_charges_col = db["sales_charges"]
markups_col = db["markups"]
