"""
Quick demo script: serve the MannMitra activity engine API locally.

Usage:
    python scripts/run_demo.py

Then start a session, e.g.:
    curl -X POST localhost:8000/api/sessions \\
        -H 'Content-Type: application/json' \\
        -d '{"activity_type": "breathing_exercise", "user_id": "demo"}'
"""

import uvicorn

from mannmitra.core.catalog import ActivityCatalog


def print_catalog(catalog: ActivityCatalog) -> None:
    """List the bundled activities grouped by category."""
    for category in sorted({a.category for a in catalog.all()}):
        print(f"  [{category}]")
        for activity in catalog.by_category(category):
            durations = "/".join(str(d) for d in activity.durations)
            levels = ", ".join(activity.difficulty_levels)
            print(f"    {activity.activity_type:<22} {durations} min  ({levels})")


def main():
    catalog = ActivityCatalog.default()
    print("=" * 60)
    print("  MannMitra - Adaptive Therapeutic Activity Engine")
    print("=" * 60)
    print()
    print(f"{len(catalog)} activities available:")
    print_catalog(catalog)
    print()
    print("Sessions:  POST /api/sessions, then /api/sessions/{id}/input")
    print("Advice:    POST /api/recommendations (or /crisis, /quick-relief)")
    print("Narration: set LLM_API_KEY in .env, otherwise scripted steps are used")
    print("Tuning:    MANNMITRA_* environment variables (see core/config.py)")
    print()
    print("Starting server at http://localhost:8000  (docs at /docs)")
    print("Press Ctrl+C to stop.")
    print()

    uvicorn.run(
        "mannmitra.api.app:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )


if __name__ == "__main__":
    main()
