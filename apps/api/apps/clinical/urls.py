"""
Clinical URLs - Patients, sessions, documents
"""
from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .views import (
    ClinicalSessionViewSet,
    PatientDocumentViewSet,
    PatientViewSet,
)

router = DefaultRouter()
router.register(r'patients', PatientViewSet, basename='patient')
router.register(r'sessions', ClinicalSessionViewSet, basename='clinical-session')
router.register(r'documents', PatientDocumentViewSet, basename='patient-document')

urlpatterns = [
    path('', include(router.urls)),
]
