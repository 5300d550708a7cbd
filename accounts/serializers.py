from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError as DjangoPasswordValidationError
from rest_framework import serializers
from rest_framework_simplejwt.exceptions import AuthenticationFailed
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer

from .models import CustomUser


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    """
    Serializer for user login and token generation.

    Fields:
        - email (required)
        - password (required)
    Rejects deactivated accounts before issuing tokens.
    """
    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token['email'] = user.email
        token['user_type'] = user.user_type
        return token

    def validate(self, attrs):
        user = CustomUser.objects.filter(email=attrs.get('email')).first()
        if user is not None and not user.is_active:
            raise AuthenticationFailed("Your account is deactivated.")

        return super().validate(attrs)


class RegistrationSerializer(serializers.ModelSerializer):
    """
    Serializer for user registration.

    Fields :
        required: first_name, last_name, user_type, email, password, confirm_password
        optional: stage_name, phone_number
    Validates password confirmation and creates a new user.
    """
    password = serializers.CharField(required=True, write_only=True)
    confirm_password = serializers.CharField(required=True, write_only=True)

    class Meta:
        model = CustomUser
        fields = ['id', 'first_name', 'last_name', 'user_type', 'stage_name', 'phone_number', 'email', 'password', 'confirm_password']
        read_only_fields = ['id']
        extra_kwargs = {
            'first_name': {'required': True},
            'last_name': {'required': True},
            'email': {'required': True},
            'user_type': {'required': True},
        }

    def validate(self, attrs):
        if attrs['password'] != attrs['confirm_password']:
            raise serializers.ValidationError({'confirm_password': "Passwords do not match."})
        try:
            validate_password(attrs['password'])
        except DjangoPasswordValidationError as exc:
            raise serializers.ValidationError({'password': list(exc.messages)})
        return attrs

    def create(self, validated_data):
        validated_data.pop('confirm_password')
        password = validated_data.pop('password')
        return CustomUser.objects.create_user(password=password, **validated_data)


class UserProfileSerializer(serializers.ModelSerializer):
    """
    Serializer for the authenticated user's own profile.

    The 'id', 'email' and 'user_type' fields are read-only.
    """
    class Meta:
        model = CustomUser
        fields = ['id', 'email', 'first_name', 'last_name', 'user_type', 'stage_name', 'phone_number']
        read_only_fields = ['id', 'email', 'user_type']


class UserSummarySerializer(serializers.ModelSerializer):
    """
    Lightweight user reference embedded in project and proposal payloads.
    """
    display_name = serializers.CharField(read_only=True)

    class Meta:
        model = CustomUser
        fields = ['id', 'display_name', 'user_type']
