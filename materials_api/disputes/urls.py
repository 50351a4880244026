from django.urls import path

from . import views

urlpatterns = [
    path(
        'orders/<int:order_id>/dispute/',
        views.OrderDisputeAPIView.as_view(),
        name='order-dispute',
    ),
    path(
        'disputes/',
        views.ListDisputesAPIView.as_view(),
        name='disputes-list',
    ),
    path(
        'disputes/<int:id>/resolve/',
        views.ResolveDisputeAPIView.as_view(),
        name='disputes-resolve',
    ),
]
