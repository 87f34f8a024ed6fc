"""Generated credentials shared by the stack."""
from ..constants import ADMIN_USERNAME, COMPONENT_CREDENTIALS, PASSWORD_LENGTH
from ..models.resources import ResourceGroup, Secret
from .common import BuildContext


def admin_secret_name(ctx: BuildContext) -> str:
    return ctx.name("admin")


def build_credentials(ctx: BuildContext) -> ResourceGroup:
    secret = Secret(
        **ctx.metadata(COMPONENT_CREDENTIALS, admin_secret_name(ctx)),
        static={"username": ADMIN_USERNAME},
        generated={"password": PASSWORD_LENGTH},
    )
    return ResourceGroup(component=COMPONENT_CREDENTIALS, resources=[secret])
