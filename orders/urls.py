from django.urls import path

from . import views, webhook

app_name = "orders"
urlpatterns = [
    path("orders", views.create_order_view, name="create_order"),
    path("orders/<str:order_id>", views.order_detail_view, name="order_detail"),
    path("checkout", views.checkout_view, name="checkout"),

    # gateway HTTP notification
    path("midtrans/webhook", webhook.midtrans_webhook, name="midtrans_webhook"),
    path("midtrans/webhook/", webhook.midtrans_webhook),
]
