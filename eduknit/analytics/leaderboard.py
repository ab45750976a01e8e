from motor.motor_asyncio import AsyncIOMotorDatabase
from typing import List

# ==================== LEADERBOARD QUERIES ====================

async def get_points_leaderboard(
    db: AsyncIOMotorDatabase,
    skip: int = 0,
    limit: int = 10
) -> List[dict]:
    """Top students by points among public profiles"""

    pipeline = [
        # only public profiles
        {"$match": {"privacy.profile_visibility": "PUBLIC"}},

        # join account
        {
            "$lookup": {
                "from": "users",
                "localField": "user_id",
                "foreignField": "user_id",
                "as": "user"
            }
        },
        {"$unwind": "$user"},
        {"$match": {"user.is_deleted": {"$ne": True}, "user.role": "student"}},

        {
            "$project": {
                "_id": 0,
                "user_id": 1,
                "username": "$user.username",
                "first_name": "$user.first_name",
                "last_name": "$user.last_name",
                "total_points": "$gamification.total_points",
                "level": "$gamification.level",
                "courses_completed": "$statistics.total_courses_completed",
            }
        },

        {"$sort": {"total_points": -1, "courses_completed": -1}},
        {"$skip": skip},
        {"$limit": limit}
    ]

    results = await db.student_profiles.aggregate(pipeline).to_list(length=limit)

    # rank injection (after pagination)
    for idx, row in enumerate(results):
        row["rank"] = skip + idx + 1

    return results
