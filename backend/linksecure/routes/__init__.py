from .files import router as files
from .links import redirect_router as short_redirect
from .links import router as links
from .secure import router as secure
from .secure_links import router as secure_links
from .team import router as team
from .users import router as users
