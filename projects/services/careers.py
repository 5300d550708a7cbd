from django.utils import timezone

from ..constants import CATEGORY_ROLE_LABELS
from ..models import Career


def ensure_pm_career(project, performer):
    """Record the PM career entry for ``performer`` on ``project`` once."""
    role_label = CATEGORY_ROLE_LABELS.get(project.category or '', 'PM')
    career, _ = Career.objects.get_or_create(
        performer=performer,
        project=project,
        defaults={
            'kind': project.category or 'other',
            'title': project.title,
            'date': project.start_date or timezone.localdate(),
            'role_label': f"{role_label} (PM)",
            'description': project.description or '',
        },
    )
    return career
