"""Main API URL router for /api/v1/."""
from django.urls import path, include
from rest_framework.routers import DefaultRouter

from api.v1.branch_views import BranchViewSet
from api.v1.division_views import DivisionViewSet, PositionViewSet
from api.v1.service_area_views import ServiceAreaViewSet
from core.views import health

router = DefaultRouter()
router.register(r'branches', BranchViewSet, basename='branch')
router.register(r'service-areas', ServiceAreaViewSet, basename='service-area')
router.register(r'divisions', DivisionViewSet, basename='division')
router.register(r'positions', PositionViewSet, basename='position')


app_name = 'api'
urlpatterns = [
    path('health/', health, name='health'),
    path('', include(router.urls)),
]
