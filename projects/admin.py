from django.contrib import admin

from .models import Career, NegotiationEvent, Project, ProjectSchedule, Proposal


class ProjectScheduleInline(admin.TabularInline):
    model = ProjectSchedule
    extra = 0


@admin.register(Project)
class ProjectAdmin(admin.ModelAdmin):
    list_display = ('id', 'title', 'owner', 'parent_project', 'pm_performer', 'confirmation_status', 'progress_status', 'summary_status', 'created_at')
    list_filter = ('confirmation_status', 'progress_status', 'summary_status', 'visibility')
    search_fields = ('title', 'client_company', 'owner__email')
    readonly_fields = ('confirmation_status', 'progress_status', 'summary_status', 'pm_performer')
    inlines = [ProjectScheduleInline]


@admin.register(Proposal)
class ProposalAdmin(admin.ModelAdmin):
    list_display = ('id', 'project', 'performer', 'sender', 'status', 'fee', 'created_at', 'accepted_at')
    list_filter = ('status',)
    search_fields = ('performer__email', 'sender__email', 'project__title')
    readonly_fields = ('status', 'accepted_at', 'sender_last_read_at', 'receiver_last_read_at')


@admin.register(NegotiationEvent)
class NegotiationEventAdmin(admin.ModelAdmin):
    list_display = ('id', 'proposal', 'actor', 'kind', 'suggested_fee', 'created_at')
    list_filter = ('kind',)
    search_fields = ('actor__email', 'text')

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Career)
class CareerAdmin(admin.ModelAdmin):
    list_display = ('id', 'performer', 'project', 'kind', 'role_label', 'date')
    search_fields = ('performer__email', 'title')
