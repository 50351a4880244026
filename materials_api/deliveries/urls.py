from django.urls import path

from . import views

urlpatterns = [
    path(
        'orders/<int:order_id>/start-delivery/',
        views.StartDeliveryAPIView.as_view(),
        name='order-start-delivery',
    ),
    path(
        'orders/<int:order_id>/confirm-delivery/',
        views.ConfirmDeliveryAPIView.as_view(),
        name='order-confirm-delivery',
    ),
    path(
        'deliveries/<int:pk>/verify-pin/',
        views.VerifyPinAPIView.as_view(),
        name='delivery-verify-pin',
    ),
    path(
        'deliveries/<int:pk>/photo/',
        views.PhotoProofAPIView.as_view(),
        name='delivery-photo-proof',
    ),
]
