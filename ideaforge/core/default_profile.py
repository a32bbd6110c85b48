"""Built-in "default" profile, registered when no other profile source is wired in."""

from __future__ import annotations

from typing import Any

DEFAULT_PROFILE: dict[str, Any] = {
    "name": "Default Configuration",
    "criteria": [
        {
            "name": "Problem Severity",
            "description": "How painful and frequent is the problem for the target user?",
            "weight": 20,
            "questions": [
                "How often does the target user hit this problem?",
                "What does the problem cost them today in time or money?",
            ],
        },
        {
            "name": "Market Size",
            "description": "How many paying customers could this realistically reach?",
            "weight": 20,
            "questions": ["Who exactly pays, and how many of them are there?"],
        },
        {
            "name": "Competition",
            "description": "Room left by existing solutions (10 = wide open).",
            "weight": 15,
            "questions": ["Which existing tools solve this today, and where do they fall short?"],
        },
        {
            "name": "Technical Feasibility",
            "description": "Can a small team build the MVP with today's technology?",
            "weight": 15,
            "questions": ["What is the hardest technical piece of the MVP?"],
        },
        {
            "name": "Monetization Clarity",
            "description": "How obvious is the path from users to revenue?",
            "weight": 15,
            "questions": ["What would a customer pay, and for what exactly?"],
        },
        {
            "name": "Time To Market",
            "description": "How quickly can a first paying version ship (10 = weeks)?",
            "weight": 15,
            "questions": [
                "What blocks the first release (regulation, integrations, data)?",
            ],
        },
    ],
    "frameworks": [
        {
            "name": "Pain Point",
            "description": "Start from a specific, recurring frustration and remove it.",
            "template": "[User] struggles with [problem] because [cause]; [solution] removes it by [mechanism].",
            "example": "Freelancers lose hours chasing invoices; an agent that follows up automatically.",
        },
        {
            "name": "Unbundling",
            "description": "Take one feature of a large platform and make it the whole product.",
            "template": "[Platform] does [feature] poorly; a focused tool does only [feature], well.",
            "example": "A standalone scheduling tool carved out of an all-in-one CRM.",
        },
        {
            "name": "X for Y",
            "description": "Apply a proven model to an underserved audience.",
            "template": "[Proven product] for [underserved audience].",
            "example": "Duolingo for compliance training.",
        },
    ],
    "domains": [
        {"domain": "FinTech", "subdomain": "Small Business Finance"},
        {"domain": "HealthTech", "subdomain": "Clinic Operations"},
        {"domain": "EdTech", "subdomain": "Professional Training"},
        {"domain": "Developer Tools", "subdomain": "Observability"},
        {"domain": "Logistics", "subdomain": "Last-Mile Delivery"},
        {"domain": "Real Estate", "subdomain": "Property Management"},
        {"domain": "LegalTech"},
    ],
    "problem_types": [
        "Manual, repetitive work",
        "Information scattered across tools",
        "Compliance burden",
        "Slow feedback loops",
        "Costly mistakes from missing data",
    ],
    "solution_types": [
        "AI agent",
        "Workflow automation",
        "Vertical SaaS",
        "Marketplace",
        "API / developer platform",
    ],
    "monetization_models": ["Subscription", "Usage-based", "Transaction fee"],
    "target_audiences": ["Small businesses", "Freelancers", "Mid-market teams"],
}
