from django.core.management.base import BaseCommand
from django.contrib.auth.models import Group, Permission
from django.contrib.contenttypes.models import ContentType
from django.contrib.auth import get_user_model

from disputes.models import Dispute
from disputes.permissions import MODERATORS_GROUP

User = get_user_model()


class Command(BaseCommand):
    help = "Creates the 'Moderators' group that may resolve disputes. Optionally assign a user."

    def add_arguments(self, parser):
        parser.add_argument('--email', type=str, help='Email of user to assign to Moderators group')

    def handle(self, *args, **options):
        group, created = Group.objects.get_or_create(name=MODERATORS_GROUP)
        if created:
            self.stdout.write(self.style.SUCCESS(f"Created group: {MODERATORS_GROUP}"))
        else:
            self.stdout.write(f"Group '{MODERATORS_GROUP}' already exists.")

        content_type = ContentType.objects.get_for_model(Dispute)
        perms = Permission.objects.filter(content_type=content_type, codename__in=['view_dispute', 'change_dispute'])
        group.permissions.add(*perms)
        self.stdout.write(self.style.SUCCESS("Assigned dispute permissions to the Moderators group."))

        email = options['email']
        if email:
            try:
                user = User.objects.get(email=email)
            except User.DoesNotExist:
                self.stdout.write(self.style.ERROR(f"User with email {email} does not exist."))
                return
            user.groups.add(group)
            self.stdout.write(self.style.SUCCESS(f"User {email} added to Moderators group."))
