"""
Builders for raw user/idea/offer documents as they sit in a store.
"""


def creator_doc(**overrides):
    doc = {
        "name": "Ada Creator",
        "email": "ada@invoicely.io",
        "user_type": "creator",
        "experience": "first-time founder",
    }
    doc.update(overrides)
    return doc


def investor_doc(**overrides):
    doc = {
        "name": "Ivan Investor",
        "email": "ivan@seedfund.vc",
        "user_type": "investor",
        "risk_tolerance": "medium",
    }
    doc.update(overrides)
    return doc


def idea_doc(creator_id, **overrides):
    doc = {
        "creator_id": creator_id,
        "title": "Smart invoicing",
        "description": "Invoices that chase themselves",
        "category": "Technology",
        "tags": ["saas", "finance"],
        "funding_goal": 50000,
        "current_funding": 0,
        "equity_offered": 10,
        "stage": "mvp",
        "status": "published",
    }
    doc.update(overrides)
    return doc


def offer_doc(investor_id, **overrides):
    doc = {
        "investor_id": investor_id,
        "title": "Seed tech fund",
        "description": "Early cheques for software",
        "amount_range": {"min": 10000, "max": 100000},
        "preferred_equity": {"min": 5, "max": 20},
        "preferred_stages": ["mvp", "early"],
        "preferred_industries": ["Technology"],
        "investment_type": "equity",
        "is_active": True,
    }
    doc.update(overrides)
    return doc


# Scores 7 against the default idea/creator/investor: only risk lines up.
POOR_OFFER = {
    "title": "Biotech growth fund",
    "amount_range": {"min": 5000000, "max": 9000000},
    "preferred_stages": ["growth"],
    "preferred_industries": ["Biotech"],
}
