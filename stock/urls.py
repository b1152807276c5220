from django.urls import path
from . import views

app_name = "stock"

urlpatterns = [
    path("settings/", views.stock_settings, name="settings"),

    path("intends/", views.IntendListView.as_view(), name="intend-list"),
    path("intends/<int:intend_id>/", views.IntendDetailView.as_view(), name="intend-detail"),
    path("intends/<int:intend_id>/items/", views.IntendItemView.as_view(), name="intend-items"),
    path("intends/<int:intend_id>/items/<int:item_id>/", views.IntendItemDetailView.as_view(), name="intend-item-detail"),

    path("purchase-orders/", views.PurchaseOrderListView.as_view(), name="po-list"),
    path("purchase-orders/generate-from-intend/", views.PurchaseOrderGenerateView.as_view(), name="po-generate"),
    path("purchase-orders/<int:po_id>/", views.PurchaseOrderDetailView.as_view(), name="po-detail"),
    path("purchase-orders/<int:po_id>/receivable/", views.PurchaseOrderReceivableView.as_view(), name="po-receivable"),

    path("grns/", views.GRNListView.as_view(), name="grn-list"),
    path("grns/<int:grn_id>/", views.GRNDetailView.as_view(), name="grn-detail"),

    path("payments/", views.PaymentListView.as_view(), name="payment-list"),
    path("payments/outstanding/", views.PaymentOutstandingView.as_view(), name="payment-outstanding"),
    path("payments/<int:payment_id>/", views.PaymentDetailView.as_view(), name="payment-detail"),

    path("adjust/", views.StockAdjustView.as_view(), name="adjust"),
    path("adjustments/", views.AdjustmentListView.as_view(), name="adjustment-list"),
    path("adjustments/<int:adjustment_id>/", views.AdjustmentDetailView.as_view(), name="adjustment-detail"),

    path("consume/", views.StockConsumeView.as_view(), name="consume"),
    path("movements/", views.MovementReferenceView.as_view(), name="movement-reference"),
    path("movements/<int:ingredient_id>/", views.MovementHistoryView.as_view(), name="movement-history"),
    path("movements/<int:ingredient_id>/verify/", views.MovementVerifyView.as_view(), name="movement-verify"),
]
