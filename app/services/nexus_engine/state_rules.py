"""
Nexus Compliance - State Nexus Rules

Statutory thresholds and nexus triggers for the 50 states and DC, grouped
by tax type:

- sales: economic nexus (post-Wayfair), marketplace and affiliate rules
- income: income tax nexus and PL 86-272 treatment
- payroll: withholding and state insurance programs
- franchise: "doing business" and qualification rules

Dollar amounts are annual, in USD.
"""

from typing import Any, Dict, Optional


# ===========================================
# STATE RULES
# ===========================================

STATE_RULES: Dict[str, Dict[str, Any]] = {
    "AL": {
        "name": "Alabama",
        "sales": {
            "economic_nexus_threshold": 250_000,
            "transaction_count_threshold": None,
            "marketplace_threshold": 250_000,
            "physical_presence_triggers": ["employee", "property", "inventory"],
            "affiliate_nexus": True,
            "effective_date": "2018-10-01",
        },
        "income": {
            "has_income_tax": True,
            "economic_nexus_threshold": 500_000,
            "pl86_272_applies": True,
            "protected_activities": ["solicitation", "order_taking"],
            "unprotected_activities": ["installation", "training", "repair", "technical_support"],
        },
        "payroll": {
            "employee_threshold": 1,
            "contractor_threshold": 1,
            "withholding_required": True,
            "unemployment_insurance": True,
        },
        "franchise": {
            "has_franchise_tax": True,
            "doing_business_threshold": "any_presence",
            "minimum_tax": 100,
            "qualification_required": True,
        },
    },
    "AK": {
        "name": "Alaska",
        "sales": {
            "has_state_sales_tax": False,
            "local_sales_tax_may_apply": True,
            "economic_nexus_threshold": None,
            "note": "No state sales tax but some localities impose sales tax",
        },
        "income": {
            "has_income_tax": False,
            "note": "No state income tax",
        },
        "payroll": {
            "employee_threshold": 1,
            "withholding_required": False,
            "unemployment_insurance": True,
        },
        "franchise": {
            "has_franchise_tax": False,
        },
    },
    "AZ": {
        "name": "Arizona",
        "sales": {
            "economic_nexus_threshold": 100_000,
            "transaction_count_threshold": None,
            "marketplace_threshold": 100_000,
            "physical_presence_triggers": ["employee", "property", "inventory"],
            "affiliate_nexus": True,
            "effective_date": "2019-10-01",
            "note": "Transaction Privilege Tax (TPT)",
        },
        "income": {
            "has_income_tax": True,
            "economic_nexus_threshold": 100_000,
            "pl86_272_applies": True,
            "protected_activities": ["solicitation"],
            "unprotected_activities": ["installation", "training", "repair"],
        },
        "payroll": {
            "employee_threshold": 1,
            "withholding_required": True,
            "unemployment_insurance": True,
        },
        "franchise": {
            "has_franchise_tax": False,
            "note": "No franchise tax",
        },
    },
    "AR": {
        "name": "Arkansas",
        "sales": {
            "economic_nexus_threshold": 100_000,
            "transaction_count_threshold": 200,
            "marketplace_threshold": 100_000,
            "physical_presence_triggers": ["employee", "property", "inventory"],
            "affiliate_nexus": True,
            "effective_date": "2019-07-01",
        },
        "income": {
            "has_income_tax": True,
            "economic_nexus_threshold": 100_000,
            "pl86_272_applies": True,
        },
        "payroll": {
            "employee_threshold": 1,
            "withholding_required": True,
            "unemployment_insurance": True,
        },
        "franchise": {
            "has_franchise_tax": True,
            "minimum_tax": 150,
            "qualification_required": True,
        },
    },
    "CA": {
        "name": "California",
        "sales": {
            "economic_nexus_threshold": 500_000,
            "transaction_count_threshold": None,
            "marketplace_threshold": 500_000,
            "physical_presence_triggers": ["employee", "property", "inventory", "trade_show_attendance"],
            "affiliate_nexus": True,
            "effective_date": "2019-04-01",
        },
        "income": {
            "has_income_tax": True,
            "economic_nexus_threshold": 637_252,
            "pl86_272_applies": True,
            "protected_activities": ["solicitation", "order_taking", "advertising"],
            "unprotected_activities": ["installation", "training", "repair", "maintenance", "collection"],
            "requires_judgment": ["software_delivery", "digital_services", "cloud_computing"],
        },
        "payroll": {
            "employee_threshold": 1,
            "contractor_threshold": 1,
            "withholding_required": True,
            "unemployment_insurance": True,
            "disability_insurance": True,
            "paid_family_leave": True,
        },
        "franchise": {
            "has_franchise_tax": True,
            "doing_business_threshold": "any_presence",
            "minimum_tax": 800,
            "qualification_required": True,
            "note": "Minimum $800 franchise tax for all registered entities",
        },
    },
    "CO": {
        "name": "Colorado",
        "sales": {
            "economic_nexus_threshold": 100_000,
            "transaction_count_threshold": None,
            "marketplace_threshold": 100_000,
            "physical_presence_triggers": ["employee", "property", "inventory"],
            "affiliate_nexus": True,
            "effective_date": "2019-06-01",
            "has_local_tax_complexity": True,
            "note": "Complex home-rule city requirements",
        },
        "income": {
            "has_income_tax": True,
            "economic_nexus_threshold": 100_000,
            "pl86_272_applies": True,
        },
        "payroll": {
            "employee_threshold": 1,
            "withholding_required": True,
            "unemployment_insurance": True,
            "paid_family_leave": True,
        },
        "franchise": {
            "has_franchise_tax": False,
        },
    },
    "CT": {
        "name": "Connecticut",
        "sales": {
            "economic_nexus_threshold": 100_000,
            "transaction_count_threshold": 200,
            "marketplace_threshold": 100_000,
            "physical_presence_triggers": ["employee", "property", "inventory"],
            "affiliate_nexus": True,
            "effective_date": "2018-12-01",
        },
        "income": {
            "has_income_tax": True,
            "economic_nexus_threshold": 500_000,
            "pl86_272_applies": True,
        },
        "payroll": {
            "employee_threshold": 1,
            "withholding_required": True,
            "unemployment_insurance": True,
            "paid_family_leave": True,
        },
        "franchise": {
            "has_franchise_tax": False,
            "note": "Business entity tax applies",
        },
    },
    "DE": {
        "name": "Delaware",
        "sales": {
            "has_state_sales_tax": False,
            "note": "No sales tax in Delaware",
        },
        "income": {
            "has_income_tax": True,
            "economic_nexus_threshold": 100_000,
            "pl86_272_applies": True,
        },
        "payroll": {
            "employee_threshold": 1,
            "withholding_required": True,
            "unemployment_insurance": True,
        },
        "franchise": {
            "has_franchise_tax": True,
            "minimum_tax": 175,
            "qualification_required": True,
            "note": "Annual franchise tax based on authorized shares or assumed par value capital",
        },
    },
    "DC": {
        "name": "District of Columbia",
        "sales": {
            "economic_nexus_threshold": 100_000,
            "transaction_count_threshold": 200,
            "marketplace_threshold": 100_000,
            "physical_presence_triggers": ["employee", "property", "inventory"],
            "effective_date": "2019-01-01",
        },
        "income": {
            "has_income_tax": True,
            "economic_nexus_threshold": 100_000,
            "pl86_272_applies": True,
        },
        "payroll": {
            "employee_threshold": 1,
            "withholding_required": True,
            "unemployment_insurance": True,
            "paid_family_leave": True,
        },
        "franchise": {
            "has_franchise_tax": True,
            "minimum_tax": 250,
        },
    },
    "FL": {
        "name": "Florida",
        "sales": {
            "economic_nexus_threshold": 100_000,
            "transaction_count_threshold": None,
            "marketplace_threshold": 100_000,
            "physical_presence_triggers": ["employee", "property", "inventory"],
            "affiliate_nexus": True,
            "effective_date": "2021-07-01",
        },
        "income": {
            "has_income_tax": False,
            "corporate_income_tax": True,
            "corporate_threshold": 50_000,
            "pl86_272_applies": True,
            "note": "No personal income tax; corporate income tax applies",
        },
        "payroll": {
            "employee_threshold": 1,
            "withholding_required": False,
            "unemployment_insurance": True,
            "note": "No state income tax withholding required",
        },
        "franchise": {
            "has_franchise_tax": False,
        },
    },
    "GA": {
        "name": "Georgia",
        "sales": {
            "economic_nexus_threshold": 100_000,
            "transaction_count_threshold": 200,
            "marketplace_threshold": 100_000,
            "physical_presence_triggers": ["employee", "property", "inventory"],
            "affiliate_nexus": True,
            "effective_date": "2019-01-01",
        },
        "income": {
            "has_income_tax": True,
            "economic_nexus_threshold": 100_000,
            "pl86_272_applies": True,
        },
        "payroll": {
            "employee_threshold": 1,
            "withholding_required": True,
            "unemployment_insurance": True,
        },
        "franchise": {
            "has_franchise_tax": False,
            "net_worth_tax": True,
            "note": "Net worth tax applies to corporations",
        },
    },
    "HI": {
        "name": "Hawaii",
        "sales": {
            "economic_nexus_threshold": 100_000,
            "transaction_count_threshold": 200,
            "marketplace_threshold": 100_000,
            "physical_presence_triggers": ["employee", "property", "inventory"],
            "effective_date": "2018-07-01",
            "note": "General Excise Tax (GET) - applies to gross receipts",
        },
        "income": {
            "has_income_tax": True,
            "economic_nexus_threshold": 100_000,
            "pl86_272_applies": True,
        },
        "payroll": {
            "employee_threshold": 1,
            "withholding_required": True,
            "unemployment_insurance": True,
            "temporary_disability_insurance": True,
        },
        "franchise": {
            "has_franchise_tax": False,
        },
    },
    "ID": {
        "name": "Idaho",
        "sales": {
            "economic_nexus_threshold": 100_000,
            "transaction_count_threshold": None,
            "marketplace_threshold": 100_000,
            "physical_presence_triggers": ["employee", "property", "inventory"],
            "effective_date": "2018-06-01",
        },
        "income": {
            "has_income_tax": True,
            "economic_nexus_threshold": 100_000,
            "pl86_272_applies": True,
        },
        "payroll": {
            "employee_threshold": 1,
            "withholding_required": True,
            "unemployment_insurance": True,
        },
        "franchise": {
            "has_franchise_tax": False,
        },
    },
    "IL": {
        "name": "Illinois",
        "sales": {
            "economic_nexus_threshold": 100_000,
            "transaction_count_threshold": 200,
            "marketplace_threshold": 100_000,
            "physical_presence_triggers": ["employee", "property", "inventory"],
            "affiliate_nexus": True,
            "effective_date": "2021-01-01",
        },
        "income": {
            "has_income_tax": True,
            "economic_nexus_threshold": 100_000,
            "pl86_272_applies": True,
        },
        "payroll": {
            "employee_threshold": 1,
            "withholding_required": True,
            "unemployment_insurance": True,
        },
        "franchise": {
            "has_franchise_tax": True,
            "note": "Being phased out",
        },
    },
    "IN": {
        "name": "Indiana",
        "sales": {
            "economic_nexus_threshold": 100_000,
            "transaction_count_threshold": 200,
            "marketplace_threshold": 100_000,
            "physical_presence_triggers": ["employee", "property", "inventory"],
            "effective_date": "2018-10-01",
        },
        "income": {
            "has_income_tax": True,
            "economic_nexus_threshold": 100_000,
            "pl86_272_applies": True,
        },
        "payroll": {
            "employee_threshold": 1,
            "withholding_required": True,
            "unemployment_insurance": True,
        },
        "franchise": {
            "has_franchise_tax": False,
        },
    },
    "IA": {
        "name": "Iowa",
        "sales": {
            "economic_nexus_threshold": 100_000,
            "transaction_count_threshold": None,
            "marketplace_threshold": 100_000,
            "physical_presence_triggers": ["employee", "property", "inventory"],
            "effective_date": "2019-01-01",
        },
        "income": {
            "has_income_tax": True,
            "economic_nexus_threshold": 100_000,
            "pl86_272_applies": True,
        },
        "payroll": {
            "employee_threshold": 1,
            "withholding_required": True,
            "unemployment_insurance": True,
        },
        "franchise": {
            "has_franchise_tax": False,
        },
    },
    "KS": {
        "name": "Kansas",
        "sales": {
            "economic_nexus_threshold": 100_000,
            "transaction_count_threshold": None,
            "marketplace_threshold": 100_000,
            "physical_presence_triggers": ["employee", "property", "inventory"],
            "effective_date": "2021-07-01",
        },
        "income": {
            "has_income_tax": True,
            "economic_nexus_threshold": 100_000,
            "pl86_272_applies": True,
        },
        "payroll": {
            "employee_threshold": 1,
            "withholding_required": True,
            "unemployment_insurance": True,
        },
        "franchise": {
            "has_franchise_tax": True,
            "minimum_tax": 40,
        },
    },
    "KY": {
        "name": "Kentucky",
        "sales": {
            "economic_nexus_threshold": 100_000,
            "transaction_count_threshold": 200,
            "marketplace_threshold": 100_000,
            "physical_presence_triggers": ["employee", "property", "inventory"],
            "effective_date": "2018-10-01",
        },
        "income": {
            "has_income_tax": True,
            "economic_nexus_threshold": 100_000,
            "pl86_272_applies": True,
        },
        "payroll": {
            "employee_threshold": 1,
            "withholding_required": True,
            "unemployment_insurance": True,
        },
        "franchise": {
            "has_franchise_tax": False,
            "limited_liability_entity_tax": True,
        },
    },
    "LA": {
        "name": "Louisiana",
        "sales": {
            "economic_nexus_threshold": 100_000,
            "transaction_count_threshold": 200,
            "marketplace_threshold": 100_000,
            "physical_presence_triggers": ["employee", "property", "inventory"],
            "effective_date": "2018-07-01",
        },
        "income": {
            "has_income_tax": True,
            "economic_nexus_threshold": 100_000,
            "pl86_272_applies": True,
        },
        "payroll": {
            "employee_threshold": 1,
            "withholding_required": True,
            "unemployment_insurance": True,
        },
        "franchise": {
            "has_franchise_tax": True,
            "minimum_tax": 110,
        },
    },
    "ME": {
        "name": "Maine",
        "sales": {
            "economic_nexus_threshold": 100_000,
            "transaction_count_threshold": 200,
            "marketplace_threshold": 100_000,
            "physical_presence_triggers": ["employee", "property", "inventory"],
            "effective_date": "2018-07-01",
        },
        "income": {
            "has_income_tax": True,
            "economic_nexus_threshold": 100_000,
            "pl86_272_applies": True,
        },
        "payroll": {
            "employee_threshold": 1,
            "withholding_required": True,
            "unemployment_insurance": True,
        },
        "franchise": {
            "has_franchise_tax": False,
        },
    },
    "MD": {
        "name": "Maryland",
        "sales": {
            "economic_nexus_threshold": 100_000,
            "transaction_count_threshold": 200,
            "marketplace_threshold": 100_000,
            "physical_presence_triggers": ["employee", "property", "inventory"],
            "effective_date": "2018-10-01",
        },
        "income": {
            "has_income_tax": True,
            "economic_nexus_threshold": 100_000,
            "pl86_272_applies": True,
        },
        "payroll": {
            "employee_threshold": 1,
            "withholding_required": True,
            "unemployment_insurance": True,
        },
        "franchise": {
            "has_franchise_tax": False,
        },
    },
    "MA": {
        "name": "Massachusetts",
        "sales": {
            "economic_nexus_threshold": 100_000,
            "transaction_count_threshold": None,
            "marketplace_threshold": 100_000,
            "physical_presence_triggers": ["employee", "property", "inventory"],
            "affiliate_nexus": True,
            "effective_date": "2019-10-01",
        },
        "income": {
            "has_income_tax": True,
            "economic_nexus_threshold": 500_000,
            "pl86_272_applies": True,
            "note": "Factor presence nexus applies",
        },
        "payroll": {
            "employee_threshold": 1,
            "withholding_required": True,
            "unemployment_insurance": True,
            "paid_family_leave": True,
        },
        "franchise": {
            "has_franchise_tax": False,
            "excise_tax": True,
        },
    },
    "MI": {
        "name": "Michigan",
        "sales": {
            "economic_nexus_threshold": 100_000,
            "transaction_count_threshold": 200,
            "marketplace_threshold": 100_000,
            "physical_presence_triggers": ["employee", "property", "inventory"],
            "effective_date": "2018-10-01",
        },
        "income": {
            "has_income_tax": True,
            "economic_nexus_threshold": 100_000,
            "pl86_272_applies": True,
        },
        "payroll": {
            "employee_threshold": 1,
            "withholding_required": True,
            "unemployment_insurance": True,
        },
        "franchise": {
            "has_franchise_tax": False,
        },
    },
    "MN": {
        "name": "Minnesota",
        "sales": {
            "economic_nexus_threshold": 100_000,
            "transaction_count_threshold": 200,
            "marketplace_threshold": 100_000,
            "physical_presence_triggers": ["employee", "property", "inventory"],
            "effective_date": "2019-10-01",
        },
        "income": {
            "has_income_tax": True,
            "economic_nexus_threshold": 100_000,
            "pl86_272_applies": True,
        },
        "payroll": {
            "employee_threshold": 1,
            "withholding_required": True,
            "unemployment_insurance": True,
        },
        "franchise": {
            "has_franchise_tax": False,
        },
    },
    "MS": {
        "name": "Mississippi",
        "sales": {
            "economic_nexus_threshold": 250_000,
            "transaction_count_threshold": None,
            "marketplace_threshold": 250_000,
            "physical_presence_triggers": ["employee", "property", "inventory"],
            "effective_date": "2018-09-01",
        },
        "income": {
            "has_income_tax": True,
            "economic_nexus_threshold": 250_000,
            "pl86_272_applies": True,
        },
        "payroll": {
            "employee_threshold": 1,
            "withholding_required": True,
            "unemployment_insurance": True,
        },
        "franchise": {
            "has_franchise_tax": True,
            "minimum_tax": 25,
        },
    },
    "MO": {
        "name": "Missouri",
        "sales": {
            "economic_nexus_threshold": 100_000,
            "transaction_count_threshold": None,
            "marketplace_threshold": 100_000,
            "physical_presence_triggers": ["employee", "property", "inventory"],
            "effective_date": "2023-01-01",
        },
        "income": {
            "has_income_tax": True,
            "economic_nexus_threshold": 100_000,
            "pl86_272_applies": True,
        },
        "payroll": {
            "employee_threshold": 1,
            "withholding_required": True,
            "unemployment_insurance": True,
        },
        "franchise": {
            "has_franchise_tax": False,
        },
    },
    "MT": {
        "name": "Montana",
        "sales": {
            "has_state_sales_tax": False,
            "note": "No general sales tax",
        },
        "income": {
            "has_income_tax": True,
            "economic_nexus_threshold": 100_000,
            "pl86_272_applies": True,
        },
        "payroll": {
            "employee_threshold": 1,
            "withholding_required": True,
            "unemployment_insurance": True,
        },
        "franchise": {
            "has_franchise_tax": False,
        },
    },
    "NE": {
        "name": "Nebraska",
        "sales": {
            "economic_nexus_threshold": 100_000,
            "transaction_count_threshold": 200,
            "marketplace_threshold": 100_000,
            "physical_presence_triggers": ["employee", "property", "inventory"],
            "effective_date": "2019-01-01",
        },
        "income": {
            "has_income_tax": True,
            "economic_nexus_threshold": 100_000,
            "pl86_272_applies": True,
        },
        "payroll": {
            "employee_threshold": 1,
            "withholding_required": True,
            "unemployment_insurance": True,
        },
        "franchise": {
            "has_franchise_tax": False,
        },
    },
    "NV": {
        "name": "Nevada",
        "sales": {
            "economic_nexus_threshold": 100_000,
            "transaction_count_threshold": 200,
            "marketplace_threshold": 100_000,
            "physical_presence_triggers": ["employee", "property", "inventory"],
            "effective_date": "2018-10-01",
        },
        "income": {
            "has_income_tax": False,
            "commerce_activity_tax": True,
            "commerce_threshold": 4_000_000,
            "note": "No income tax; Commerce Tax applies to gross revenue over $4M",
        },
        "payroll": {
            "employee_threshold": 1,
            "withholding_required": False,
            "unemployment_insurance": True,
        },
        "franchise": {
            "has_franchise_tax": False,
            "business_license_fee": True,
        },
    },
    "NH": {
        "name": "New Hampshire",
        "sales": {
            "has_state_sales_tax": False,
            "note": "No general sales tax",
        },
        "income": {
            "has_income_tax": False,
            "interest_and_dividends_tax": True,
            "business_profits_tax": True,
            "business_enterprises_tax": True,
            "bpt_threshold": 50_000,
            "note": "Business Profits Tax and Business Enterprise Tax apply",
        },
        "payroll": {
            "employee_threshold": 1,
            "withholding_required": False,
            "unemployment_insurance": True,
        },
        "franchise": {
            "has_franchise_tax": False,
        },
    },
    "NJ": {
        "name": "New Jersey",
        "sales": {
            "economic_nexus_threshold": 100_000,
            "transaction_count_threshold": 200,
            "marketplace_threshold": 100_000,
            "physical_presence_triggers": ["employee", "property", "inventory"],
            "affiliate_nexus": True,
            "effective_date": "2018-11-01",
        },
        "income": {
            "has_income_tax": True,
            "economic_nexus_threshold": 100_000,
            "pl86_272_applies": True,
        },
        "payroll": {
            "employee_threshold": 1,
            "withholding_required": True,
            "unemployment_insurance": True,
            "temporary_disability_insurance": True,
            "family_leave_insurance": True,
        },
        "franchise": {
            "has_franchise_tax": False,
            "corporate_business_tax": True,
            "minimum_tax": 500,
        },
    },
    "NM": {
        "name": "New Mexico",
        "sales": {
            "economic_nexus_threshold": 100_000,
            "transaction_count_threshold": None,
            "marketplace_threshold": 100_000,
            "physical_presence_triggers": ["employee", "property", "inventory"],
            "effective_date": "2019-07-01",
            "note": "Gross Receipts Tax (GRT)",
        },
        "income": {
            "has_income_tax": True,
            "economic_nexus_threshold": 100_000,
            "pl86_272_applies": True,
        },
        "payroll": {
            "employee_threshold": 1,
            "withholding_required": True,
            "unemployment_insurance": True,
        },
        "franchise": {
            "has_franchise_tax": False,
        },
    },
    "NY": {
        "name": "New York",
        "sales": {
            "economic_nexus_threshold": 500_000,
            "transaction_count_threshold": 100,
            "marketplace_threshold": 500_000,
            "physical_presence_triggers": ["employee", "property", "inventory"],
            "affiliate_nexus": True,
            "effective_date": "2019-06-01",
        },
        "income": {
            "has_income_tax": True,
            "economic_nexus_threshold": 1_000_000,
            "pl86_272_applies": True,
            "note": "Bright-line nexus based on receipts",
        },
        "payroll": {
            "employee_threshold": 1,
            "withholding_required": True,
            "unemployment_insurance": True,
            "paid_family_leave": True,
            "disability_insurance": True,
        },
        "franchise": {
            "has_franchise_tax": True,
            "minimum_tax": 25,
            "note": "Fixed dollar minimum based on receipts",
        },
    },
    "NC": {
        "name": "North Carolina",
        "sales": {
            "economic_nexus_threshold": 100_000,
            "transaction_count_threshold": 200,
            "marketplace_threshold": 100_000,
            "physical_presence_triggers": ["employee", "property", "inventory"],
            "effective_date": "2018-11-01",
        },
        "income": {
            "has_income_tax": True,
            "economic_nexus_threshold": 100_000,
            "pl86_272_applies": True,
        },
        "payroll": {
            "employee_threshold": 1,
            "withholding_required": True,
            "unemployment_insurance": True,
        },
        "franchise": {
            "has_franchise_tax": True,
            "minimum_tax": 200,
        },
    },
    "ND": {
        "name": "North Dakota",
        "sales": {
            "economic_nexus_threshold": 100_000,
            "transaction_count_threshold": None,
            "marketplace_threshold": 100_000,
            "physical_presence_triggers": ["employee", "property", "inventory"],
            "effective_date": "2019-01-01",
        },
        "income": {
            "has_income_tax": True,
            "economic_nexus_threshold": 100_000,
            "pl86_272_applies": True,
        },
        "payroll": {
            "employee_threshold": 1,
            "withholding_required": True,
            "unemployment_insurance": True,
        },
        "franchise": {
            "has_franchise_tax": False,
        },
    },
    "OH": {
        "name": "Ohio",
        "sales": {
            "economic_nexus_threshold": 100_000,
            "transaction_count_threshold": 200,
            "marketplace_threshold": 100_000,
            "physical_presence_triggers": ["employee", "property", "inventory"],
            "effective_date": "2019-08-01",
        },
        "income": {
            "has_income_tax": True,
            "commercial_activity_tax": True,
            "cat_threshold": 150_000,
            "pl86_272_applies": True,
            "note": "Commercial Activity Tax (CAT) on gross receipts",
        },
        "payroll": {
            "employee_threshold": 1,
            "withholding_required": True,
            "unemployment_insurance": True,
        },
        "franchise": {
            "has_franchise_tax": False,
        },
    },
    "OK": {
        "name": "Oklahoma",
        "sales": {
            "economic_nexus_threshold": 100_000,
            "transaction_count_threshold": None,
            "marketplace_threshold": 100_000,
            "physical_presence_triggers": ["employee", "property", "inventory"],
            "effective_date": "2018-07-01",
        },
        "income": {
            "has_income_tax": True,
            "economic_nexus_threshold": 100_000,
            "pl86_272_applies": True,
        },
        "payroll": {
            "employee_threshold": 1,
            "withholding_required": True,
            "unemployment_insurance": True,
        },
        "franchise": {
            "has_franchise_tax": True,
            "minimum_tax": 25,
        },
    },
    "OR": {
        "name": "Oregon",
        "sales": {
            "has_state_sales_tax": False,
            "note": "No sales tax",
            "corporate_activity_tax": True,
            "cat_threshold": 1_000_000,
            "cat_note": "Corporate Activity Tax (CAT) applies to commercial activity over $1M",
        },
        "income": {
            "has_income_tax": True,
            "economic_nexus_threshold": 100_000,
            "pl86_272_applies": True,
        },
        "payroll": {
            "employee_threshold": 1,
            "withholding_required": True,
            "unemployment_insurance": True,
            "paid_family_leave": True,
        },
        "franchise": {
            "has_franchise_tax": False,
            "minimum_tax": 150,
            "note": "Minimum excise tax",
        },
    },
    "PA": {
        "name": "Pennsylvania",
        "sales": {
            "economic_nexus_threshold": 100_000,
            "transaction_count_threshold": None,
            "marketplace_threshold": 100_000,
            "physical_presence_triggers": ["employee", "property", "inventory"],
            "effective_date": "2019-07-01",
        },
        "income": {
            "has_income_tax": True,
            "economic_nexus_threshold": 100_000,
            "pl86_272_applies": True,
        },
        "payroll": {
            "employee_threshold": 1,
            "withholding_required": True,
            "unemployment_insurance": True,
            "local_tax_complexity": True,
            "note": "Complex local earned income tax requirements",
        },
        "franchise": {
            "has_franchise_tax": False,
            "capital_stock_tax": False,
            "note": "Capital stock tax phased out",
        },
    },
    "RI": {
        "name": "Rhode Island",
        "sales": {
            "economic_nexus_threshold": 100_000,
            "transaction_count_threshold": 200,
            "marketplace_threshold": 100_000,
            "physical_presence_triggers": ["employee", "property", "inventory"],
            "effective_date": "2019-07-01",
        },
        "income": {
            "has_income_tax": True,
            "economic_nexus_threshold": 100_000,
            "pl86_272_applies": True,
        },
        "payroll": {
            "employee_threshold": 1,
            "withholding_required": True,
            "unemployment_insurance": True,
            "temporary_disability_insurance": True,
        },
        "franchise": {
            "has_franchise_tax": True,
            "minimum_tax": 400,
        },
    },
    "SC": {
        "name": "South Carolina",
        "sales": {
            "economic_nexus_threshold": 100_000,
            "transaction_count_threshold": None,
            "marketplace_threshold": 100_000,
            "physical_presence_triggers": ["employee", "property", "inventory"],
            "effective_date": "2018-11-01",
        },
        "income": {
            "has_income_tax": True,
            "economic_nexus_threshold": 100_000,
            "pl86_272_applies": True,
        },
        "payroll": {
            "employee_threshold": 1,
            "withholding_required": True,
            "unemployment_insurance": True,
        },
        "franchise": {
            "has_franchise_tax": False,
            "license_fee": True,
        },
    },
    "SD": {
        "name": "South Dakota",
        "sales": {
            "economic_nexus_threshold": 100_000,
            "transaction_count_threshold": 200,
            "marketplace_threshold": 100_000,
            "physical_presence_triggers": ["employee", "property", "inventory"],
            "effective_date": "2018-11-01",
            "note": "Wayfair case originated here",
        },
        "income": {
            "has_income_tax": False,
            "note": "No income tax",
        },
        "payroll": {
            "employee_threshold": 1,
            "withholding_required": False,
            "unemployment_insurance": True,
        },
        "franchise": {
            "has_franchise_tax": False,
        },
    },
    "TN": {
        "name": "Tennessee",
        "sales": {
            "economic_nexus_threshold": 100_000,
            "transaction_count_threshold": None,
            "marketplace_threshold": 100_000,
            "physical_presence_triggers": ["employee", "property", "inventory"],
            "effective_date": "2019-10-01",
        },
        "income": {
            "has_income_tax": False,
            "franchise_and_excise_tax": True,
            "excise_threshold": 300_000,
            "note": "No income tax on wages; Franchise & Excise Tax applies to businesses",
        },
        "payroll": {
            "employee_threshold": 1,
            "withholding_required": False,
            "unemployment_insurance": True,
        },
        "franchise": {
            "has_franchise_tax": True,
            "minimum_tax": 100,
            "excise_tax": True,
        },
    },
    "TX": {
        "name": "Texas",
        "sales": {
            "economic_nexus_threshold": 500_000,
            "transaction_count_threshold": None,
            "marketplace_threshold": 500_000,
            "physical_presence_triggers": ["employee", "property", "inventory"],
            "affiliate_nexus": True,
            "effective_date": "2019-10-01",
        },
        "income": {
            "has_income_tax": False,
            "franchise_tax_applies": True,
            "franchise_threshold": 1_230_000,
            "no_pl86_272": True,
            "note": "No income tax; Franchise (Margin) Tax applies",
        },
        "payroll": {
            "employee_threshold": 1,
            "withholding_required": False,
            "unemployment_insurance": True,
        },
        "franchise": {
            "has_franchise_tax": True,
            "margin_tax": True,
            "threshold": 1_230_000,
            "minimum_tax": 0,
            "qualification_required": True,
            "note": "Franchise (Margin) Tax based on margin",
        },
    },
    "UT": {
        "name": "Utah",
        "sales": {
            "economic_nexus_threshold": 100_000,
            "transaction_count_threshold": 200,
            "marketplace_threshold": 100_000,
            "physical_presence_triggers": ["employee", "property", "inventory"],
            "effective_date": "2019-01-01",
        },
        "income": {
            "has_income_tax": True,
            "economic_nexus_threshold": 100_000,
            "pl86_272_applies": True,
        },
        "payroll": {
            "employee_threshold": 1,
            "withholding_required": True,
            "unemployment_insurance": True,
        },
        "franchise": {
            "has_franchise_tax": False,
        },
    },
    "VT": {
        "name": "Vermont",
        "sales": {
            "economic_nexus_threshold": 100_000,
            "transaction_count_threshold": 200,
            "marketplace_threshold": 100_000,
            "physical_presence_triggers": ["employee", "property", "inventory"],
            "effective_date": "2018-07-01",
        },
        "income": {
            "has_income_tax": True,
            "economic_nexus_threshold": 100_000,
            "pl86_272_applies": True,
        },
        "payroll": {
            "employee_threshold": 1,
            "withholding_required": True,
            "unemployment_insurance": True,
        },
        "franchise": {
            "has_franchise_tax": False,
            "minimum_tax": 250,
        },
    },
    "VA": {
        "name": "Virginia",
        "sales": {
            "economic_nexus_threshold": 100_000,
            "transaction_count_threshold": 200,
            "marketplace_threshold": 100_000,
            "physical_presence_triggers": ["employee", "property", "inventory"],
            "effective_date": "2019-07-01",
        },
        "income": {
            "has_income_tax": True,
            "economic_nexus_threshold": 100_000,
            "pl86_272_applies": True,
        },
        "payroll": {
            "employee_threshold": 1,
            "withholding_required": True,
            "unemployment_insurance": True,
        },
        "franchise": {
            "has_franchise_tax": False,
            "registration_fee": True,
        },
    },
    "WA": {
        "name": "Washington",
        "sales": {
            "economic_nexus_threshold": 100_000,
            "transaction_count_threshold": None,
            "marketplace_threshold": 100_000,
            "physical_presence_triggers": ["employee", "property", "inventory"],
            "effective_date": "2018-10-01",
        },
        "income": {
            "has_income_tax": False,
            "business_and_occupation_tax": True,
            "bot_threshold": 0,
            "note": "No income tax; B&O Tax on gross receipts",
        },
        "payroll": {
            "employee_threshold": 1,
            "withholding_required": False,
            "unemployment_insurance": True,
            "paid_family_leave": True,
            "long_term_care": True,
        },
        "franchise": {
            "has_franchise_tax": False,
        },
    },
    "WV": {
        "name": "West Virginia",
        "sales": {
            "economic_nexus_threshold": 100_000,
            "transaction_count_threshold": 200,
            "marketplace_threshold": 100_000,
            "physical_presence_triggers": ["employee", "property", "inventory"],
            "effective_date": "2019-01-01",
        },
        "income": {
            "has_income_tax": True,
            "economic_nexus_threshold": 100_000,
            "pl86_272_applies": True,
        },
        "payroll": {
            "employee_threshold": 1,
            "withholding_required": True,
            "unemployment_insurance": True,
        },
        "franchise": {
            "has_franchise_tax": False,
        },
    },
    "WI": {
        "name": "Wisconsin",
        "sales": {
            "economic_nexus_threshold": 100_000,
            "transaction_count_threshold": None,
            "marketplace_threshold": 100_000,
            "physical_presence_triggers": ["employee", "property", "inventory"],
            "effective_date": "2019-10-01",
        },
        "income": {
            "has_income_tax": True,
            "economic_nexus_threshold": 100_000,
            "pl86_272_applies": True,
        },
        "payroll": {
            "employee_threshold": 1,
            "withholding_required": True,
            "unemployment_insurance": True,
        },
        "franchise": {
            "has_franchise_tax": False,
        },
    },
    "WY": {
        "name": "Wyoming",
        "sales": {
            "economic_nexus_threshold": 100_000,
            "transaction_count_threshold": 200,
            "marketplace_threshold": 100_000,
            "physical_presence_triggers": ["employee", "property", "inventory"],
            "effective_date": "2019-02-01",
        },
        "income": {
            "has_income_tax": False,
            "note": "No income tax",
        },
        "payroll": {
            "employee_threshold": 1,
            "withholding_required": False,
            "unemployment_insurance": True,
        },
        "franchise": {
            "has_franchise_tax": False,
        },
    },
}


# ===========================================
# PL 86-272 ACTIVITY CLASSIFICATION
# ===========================================

PL_86_272_ACTIVITIES: Dict[str, list] = {
    "protected": [
        "solicitation",
        "order_taking",
        "advertising",
        "maintaining_sample_room",
        "attending_trade_shows",
        "distributing_promotional_materials",
        "coordinating_shipments",
        "checking_customer_credit",
        "collecting_customer_data",
    ],
    "unprotected": [
        "installation",
        "training",
        "repair",
        "maintenance",
        "collection",
        "credit_investigation",
        "product_demonstrations",
        "technical_support",
        "warranty_service",
        "accepting_returns",
        "storing_inventory",
        "providing_consulting",
        "making_deliveries",
        "accepting_deposits",
        "providing_customer_service",
    ],
    "judgment": [
        "software_delivery",
        "digital_services",
        "cloud_computing",
        "remote_support",
        "virtual_meetings",
        "online_training",
    ],
}


# ===========================================
# RISK POSTURE
# ===========================================

# Multiplier applied to statutory thresholds
RISK_MULTIPLIERS: Dict[str, float] = {
    "conservative": 0.8,
    "standard": 1.0,
    "aggressive": 1.2,
}

# Percent-of-threshold cut-offs used to re-rate alert severity
SEVERITY_THRESHOLDS: Dict[str, Dict[str, int]] = {
    "conservative": {"high": 80, "medium": 60, "low": 40},
    "standard": {"high": 100, "medium": 80, "low": 60},
    "aggressive": {"high": 120, "medium": 100, "low": 80},
}


STATE_NAMES: Dict[str, str] = {code: rule["name"] for code, rule in STATE_RULES.items()}


def get_state_rule(state_code: str) -> Optional[Dict[str, Any]]:
    """Rules for a state code (case-insensitive), or None."""
    if not state_code:
        return None
    return STATE_RULES.get(state_code.strip().upper())


def get_risk_multiplier(risk_posture: Optional[str]) -> float:
    return RISK_MULTIPLIERS.get(risk_posture or "standard", 1.0)
