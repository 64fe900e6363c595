"""Built-in journey content used for development and new installs.

Stage rewards are omitted so they default to the sum of task points:
finishing every task of a stage then completes it through the points path.
"""

from __future__ import annotations

from typing import Any

SEED_CATALOGUE: list[dict[str, Any]] = [
    {
        "slug": "getting-started",
        "title": "Getting Started",
        "order_index": 0,
        "source": "seed",
        "stages": [
            {
                "code": "FOUNDATION",
                "order_index": 0,
                "title": "Foundation",
                "summary": "Start tracking the basics",
                "category": "habit",
                "icon": "seedling",
                "color_hex": "#E2F163",
                "requirements": {
                    "logic": "AND",
                    "rules": [
                        {"metric": "meals_logged_today", "gte": 3},
                        {"metric": "weigh_ins", "gte": 1},
                    ],
                },
                "tasks": [
                    {
                        "code": "LOG_FIRST_MEAL",
                        "title": "Log your first meal",
                        "description": "Start tracking what you eat",
                        "points": 10,
                        "condition": {"metric": "meals_logged_today", "gte": 1},
                    },
                    {
                        "code": "LOG_3_MEALS_TODAY",
                        "title": "Log 3 meals today",
                        "description": "Build a consistent logging habit",
                        "points": 20,
                        "condition": {"metric": "meals_logged_today", "gte": 3},
                    },
                    {
                        "code": "FIRST_WEIGH_IN",
                        "title": "Record your first weigh-in",
                        "description": "A starting point for tracking progress",
                        "points": 15,
                        "condition": {"metric": "weigh_ins", "gte": 1},
                    },
                ],
            },
            {
                "code": "MOMENTUM",
                "order_index": 1,
                "title": "Momentum",
                "summary": "Turn tracking into a routine",
                "category": "mixed",
                "icon": "bolt",
                "color_hex": "#4CAF50",
                "requirements": {
                    "logic": "AND",
                    "rules": [
                        {"metric": "log_streak_days", "gte": 3},
                        {"metric": "workouts_per_week", "gte": 3},
                    ],
                },
                "tasks": [
                    {
                        "code": "LOG_3_DAYS_STREAK",
                        "title": "Log meals 3 days in a row",
                        "points": 30,
                        "condition": {"metric": "log_streak_days", "gte": 3},
                    },
                    {
                        "code": "WORKOUTS_3_WEEK",
                        "title": "Train 3 times this week",
                        "points": 40,
                        "condition": {"metric": "workouts_per_week", "gte": 3},
                    },
                    {
                        "code": "LOG_5_WEIGH_INS",
                        "title": "Record 5 weigh-ins",
                        "description": "Follow the trend, not the day",
                        "points": 20,
                        "condition": {"metric": "weigh_ins", "gte": 5, "window_days": 30},
                    },
                ],
            },
        ],
    },
    {
        "slug": "building-habits",
        "title": "Building Habits",
        "order_index": 1,
        "source": "seed",
        "stages": [
            {
                "code": "CONSISTENCY",
                "order_index": 2,
                "title": "Consistency",
                "summary": "Make it stick",
                "category": "nutrition",
                "icon": "calendar",
                "color_hex": "#2196F3",
                "requirements": {
                    "logic": "AND",
                    "rules": [
                        {"metric": "log_streak_days", "gte": 7},
                        {"metric": "protein_avg_g", "gte": 120},
                    ],
                    "unlock_any_of": [{"metric": "log_streak_days", "gte": 21}],
                },
                "tasks": [
                    {
                        "code": "LOG_7_DAYS_STREAK",
                        "title": "Log meals for a full week",
                        "points": 50,
                        "condition": {"metric": "log_streak_days", "gte": 7},
                    },
                    {
                        "code": "PROTEIN_TARGET",
                        "title": "Average 120 g of protein a day",
                        "description": "Protect your muscle while you progress",
                        "points": 40,
                        "condition": {"metric": "protein_avg_g", "gte": 120},
                    },
                    {
                        "code": "TOTAL_50_MEALS",
                        "title": "Log 50 meals",
                        "points": 40,
                        "condition": {"metric": "total_meals_logged", "gte": 50, "window_days": 30},
                    },
                ],
            },
            {
                "code": "MAINTENANCE",
                "order_index": 3,
                "title": "Daily Maintenance",
                "summary": "Keep the results",
                "category": "mixed",
                "icon": "shield",
                "color_hex": "#00BCD4",
                "requirements": {
                    "logic": "AND",
                    "rules": [
                        {"metric": "nutrition_adherence_pct", "gte": 80},
                        {"metric": "workouts_per_week", "gte": 3},
                    ],
                },
                "tasks": [
                    {
                        "code": "NUTRITION_ADHERENCE",
                        "title": "Stay within your nutrition plan",
                        "points": 30,
                        "condition": {"metric": "nutrition_adherence_pct", "gte": 80},
                    },
                    {
                        "code": "CARDIO_90",
                        "title": "Do 90 minutes of cardio this week",
                        "points": 30,
                        "condition": {"metric": "cardio_minutes", "gte": 90},
                    },
                    {
                        "code": "ACTIVE_WEEK",
                        "title": "Have an active week",
                        "description": "Four workouts or 150 cardio minutes",
                        "points": 40,
                        "condition": {
                            "logic": "OR",
                            "rules": [
                                {"metric": "workouts_per_week", "gte": 4},
                                {"metric": "cardio_minutes", "gte": 150},
                            ],
                        },
                    },
                ],
            },
        ],
    },
]
