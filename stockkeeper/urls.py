"""
URL routes for the stock engine JSON endpoints.

Usage in the project urls.py:
    path('api/stock/', include('stockkeeper.urls')),
"""

from django.urls import path

from stockkeeper import views

app_name = 'stockkeeper'

urlpatterns = [
    path('stock/<str:product_id>/', views.stock_level, name='stock-level'),
    path('check/', views.check_availability, name='check-availability'),
    path('reservations/', views.reservations, name='reservations'),
    path('reservations/fulfill/', views.fulfill_reservation, name='reservation-fulfill'),
    path('reservations/sweep/', views.sweep_reservations, name='reservation-sweep'),
    path('adjustments/', views.adjustments, name='adjustments'),
    path('adjustments/bulk/', views.bulk_adjustments, name='adjustments-bulk'),
    path('returns/', views.returns, name='returns'),
    path('orders/', views.orders, name='orders'),
    path('orders/<int:order_id>/cancel/', views.cancel_order, name='order-cancel'),
    path('audit/', views.audit, name='audit'),
    path('alerts/', views.alerts, name='alerts'),
]
