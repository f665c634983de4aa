from rest_framework_simplejwt.views import TokenObtainPairView

from accounts.serializers import CustomTokenObtainPairSerializer


class CustomTokenObtainPairView(TokenObtainPairView):
    """
    POST username + password, receive an access/refresh pair
    carrying the caller's user_type
    """
    serializer_class = CustomTokenObtainPairSerializer
