# Force SQLModel table registration at test discovery time
# so every table exists before any test database is created
import matchday.models  # noqa: F401
