from django.core.management.base import BaseCommand

from catalog.auth import issue_admin_token


class Command(BaseCommand):
    help = "Mint a bearer token for the product management endpoints"

    def add_arguments(self, parser):
        parser.add_argument("subject", help="Who the token is issued to")
        parser.add_argument("--minutes", type=int, default=None, help="Token lifetime (defaults to ADMIN_JWT_TTL_MINUTES)")

    def handle(self, *args, **opts):
        token = issue_admin_token(opts["subject"], minutes=opts["minutes"])
        self.stdout.write(token)
