# Models package init
from recipeshare.models.user import User
from recipeshare.models.recipe import Recipe

__all__ = ["User", "Recipe"]
