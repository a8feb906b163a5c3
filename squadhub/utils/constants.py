"""
Constants used across the team and matchmaking system.
"""

# Roster rules
TEAM_MAX_MEMBERS = 5  # Hard roster cap
CAPTAIN_ROLE = "IGL"  # In-game leader; the only role allowed to manage a team
DEFAULT_MEMBER_ROLE = "Entry"  # Role given to accepted players and demoted captains
MAX_ROLE_LENGTH = 32

# Ratings
DEFAULT_RATING = 1000  # Starting rating for players and teams

# Matchmaking
MAPS = [
    {"id": "random", "name": "Random", "image": None},
    {"id": "dust2", "name": "Dust II", "image": None},
    {"id": "mirage", "name": "Mirage", "image": None},
    {"id": "inferno", "name": "Inferno", "image": None},
    {"id": "cache", "name": "Cache", "image": None},
    {"id": "overpass", "name": "Overpass", "image": None},
]

# Used when the identity provider gives us no usable display name
DEFAULT_DISPLAY_NAME_PREFIX = "Player_"
