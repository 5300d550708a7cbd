from rest_framework.permissions import SAFE_METHODS, BasePermission

from .services import visibility


class IsClient(BasePermission):
    def has_permission(self, request, view):
        return bool(request.user and request.user.is_authenticated and request.user.user_type == 'client')


class IsProjectEditorOrReadOnly(BasePermission):
    """
    Writes to a project's editable fields follow full visibility: the owner
    of a brief or of a PM-less project, the PM once one is assigned.
    Status changes go through the dedicated action endpoints instead.
    """
    def has_object_permission(self, request, view, obj):
        if request.method in SAFE_METHODS:
            return True
        return visibility.visibility_for(obj, request.user) == visibility.FULL


class IsProposalParty(BasePermission):
    """
    Allows access only to the sender or the performer of the proposal.
    """
    def has_object_permission(self, request, view, obj):
        return request.user.id in (obj.sender_id, obj.performer_id)
