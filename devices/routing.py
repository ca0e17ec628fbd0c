from django.urls import path

from . import consumers

websocket_urlpatterns = [
    path('ws/nutrients/', consumers.NutrientConsumer.as_asgi()),
]
