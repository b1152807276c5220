from django.contrib import admin
from django.utils.html import format_html
from django.utils.translation import gettext_lazy as _
from django.urls import reverse
from unfold.admin import ModelAdmin, TabularInline
from unfold.decorators import display
from unfold.contrib.filters.admin import (
    RangeDateFilter,
    RangeDateTimeFilter,
    RangeNumericFilter,
)
from .models import (
    Ingredient, Vendor, Intend, IntendItem, PurchaseOrder, POItem, GRN, GRNItem,
    Payment, StockMovement, StockAdjustment, StockAdjustmentItem,
    PendingSideEffect, StockSettings,
)


class ReadOnlyAdminMixin:
    """Documents and ledger rows are written by the services only."""

    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


class IntendItemInline(ReadOnlyAdminMixin, TabularInline):
    model = IntendItem
    extra = 0
    fields = ('ingredient', 'quantity', 'remarks', 'po_link')
    readonly_fields = fields

    @display(description=_("Purchase Order"))
    def po_link(self, obj):
        po_item = getattr(obj, 'po_item', None)
        if po_item is None:
            return "-"
        url = reverse('admin:stock_purchaseorder_change', args=[po_item.purchase_order_id])
        return format_html('<a href="{}">{}</a>', url, po_item.purchase_order.po_number)


class POItemInline(ReadOnlyAdminMixin, TabularInline):
    model = POItem
    extra = 0
    fields = ('ingredient', 'quantity_ordered', 'quantity_received', 'unit_price', 'total_price')
    readonly_fields = fields


class GRNItemInline(ReadOnlyAdminMixin, TabularInline):
    model = GRNItem
    extra = 0
    fields = ('ingredient', 'quantity_ordered', 'quantity_received',
              'unit_price_ordered', 'unit_price_actual', 'total_amount', 'remarks')
    readonly_fields = fields


class StockAdjustmentItemInline(ReadOnlyAdminMixin, TabularInline):
    model = StockAdjustmentItem
    extra = 0
    fields = ('ingredient', 'system_quantity', 'actual_quantity', 'variance_display', 'remarks')
    readonly_fields = fields

    @display(description=_("Variance"))
    def variance_display(self, obj):
        return f"{obj.variance:+}"


@admin.register(Ingredient)
class IngredientAdmin(ModelAdmin):
    list_display = ['id', 'name', 'unit', 'stock_display', 'min_stock', 'last_price', 'low_stock_badge']
    list_filter = ['is_active', 'unit']
    search_fields = ['name']
    list_filter_submit = True
    readonly_fields = ['stock_quantity', 'last_price', 'created_at', 'updated_at']

    @display(description=_("On Hand"), ordering='stock_quantity')
    def stock_display(self, obj):
        return f"{obj.stock_quantity} {obj.unit}"

    @display(description=_("Stock"), label=True)
    def low_stock_badge(self, obj):
        if obj.is_low_stock:
            return 'danger', _("Low")
        return 'success', _("OK")


@admin.register(Vendor)
class VendorAdmin(ModelAdmin):
    list_display = ['id', 'name', 'contact_person', 'phone', 'is_active', 'created_at']
    list_filter = ['is_active']
    search_fields = ['name', 'contact_person', 'phone', 'email']
    list_filter_submit = True


@admin.register(Intend)
class IntendAdmin(ReadOnlyAdminMixin, ModelAdmin):
    list_display = ['intend_number', 'vendor', 'intend_date', 'status_badge', 'items_count', 'created_by']
    list_filter = [
        'status',
        ('intend_date', RangeDateFilter),
    ]
    search_fields = ['intend_number', 'notes']
    list_filter_submit = True
    inlines = [IntendItemInline]

    @display(description=_("Status"), label=True)
    def status_badge(self, obj):
        colors = {
            Intend.Status.PENDING: 'info',
            Intend.Status.PARTIALLY_FULFILLED: 'warning',
            Intend.Status.FULFILLED: 'success',
        }
        return colors.get(obj.status, 'info'), obj.get_status_display()

    @display(description=_("Items"))
    def items_count(self, obj):
        return obj.items.count()


@admin.register(PurchaseOrder)
class PurchaseOrderAdmin(ReadOnlyAdminMixin, ModelAdmin):
    list_display = ['po_number', 'vendor', 'order_date', 'status_badge', 'received_percentage',
                    'total_amount', 'total_paid', 'payment_badge']
    list_filter = [
        'status',
        'payment_status',
        ('order_date', RangeDateFilter),
        ('total_amount', RangeNumericFilter),
    ]
    search_fields = ['po_number', 'vendor__name']
    list_filter_submit = True
    list_fullwidth = True
    inlines = [POItemInline]

    fieldsets = (
        (_('Order'), {
            'fields': ('po_number', 'intend', 'vendor', 'order_date', 'expected_delivery_date', 'status')
        }),
        (_('Receipt'), {
            'fields': ('total_items_count', 'received_items_count', 'received_percentage')
        }),
        (_('Financial'), {
            'fields': ('total_amount', 'actual_receivable_amount', 'total_paid', 'payment_status')
        }),
        (_('Notes'), {
            'fields': ('notes',)
        }),
    )

    @display(description=_("Status"), label=True)
    def status_badge(self, obj):
        colors = {
            PurchaseOrder.Status.PENDING: 'info',
            PurchaseOrder.Status.CONFIRMED: 'info',
            PurchaseOrder.Status.PARTIALLY_RECEIVED: 'warning',
            PurchaseOrder.Status.RECEIVED: 'success',
        }
        return colors.get(obj.status, 'info'), obj.get_status_display()

    @display(description=_("Payment"), label=True)
    def payment_badge(self, obj):
        colors = {
            PurchaseOrder.PaymentStatus.UNPAID: 'danger',
            PurchaseOrder.PaymentStatus.PARTIAL: 'warning',
            PurchaseOrder.PaymentStatus.PAID: 'success',
        }
        return colors.get(obj.payment_status, 'info'), obj.get_payment_status_display()


@admin.register(GRN)
class GRNAdmin(ReadOnlyAdminMixin, ModelAdmin):
    list_display = ['grn_number', 'po_link', 'received_date', 'received_by', 'created_at']
    list_filter = [('received_date', RangeDateFilter)]
    search_fields = ['grn_number', 'purchase_order__po_number']
    list_filter_submit = True
    inlines = [GRNItemInline]

    @display(description=_("Purchase Order"))
    def po_link(self, obj):
        url = reverse('admin:stock_purchaseorder_change', args=[obj.purchase_order_id])
        return format_html('<a href="{}">{}</a>', url, obj.purchase_order.po_number)


@admin.register(Payment)
class PaymentAdmin(ReadOnlyAdminMixin, ModelAdmin):
    list_display = ['payment_number', 'purchase_order', 'vendor', 'payment_date',
                    'amount', 'payment_method', 'transaction_reference']
    list_filter = [
        'payment_method',
        ('payment_date', RangeDateFilter),
        ('amount', RangeNumericFilter),
    ]
    search_fields = ['payment_number', 'purchase_order__po_number', 'vendor__name', 'transaction_reference']
    list_filter_submit = True


@admin.register(StockMovement)
class StockMovementAdmin(ReadOnlyAdminMixin, ModelAdmin):
    list_display = ['id', 'ingredient', 'type_badge', 'quantity', 'quantity_before',
                    'quantity_after', 'reference_type', 'reference_id', 'movement_date']
    list_filter = [
        'movement_type',
        'reference_type',
        ('movement_date', RangeDateTimeFilter),
    ]
    search_fields = ['ingredient__name', 'remarks']
    list_filter_submit = True
    list_fullwidth = True

    @display(description=_("Type"), label=True)
    def type_badge(self, obj):
        colors = {
            StockMovement.MovementType.IN: 'success',
            StockMovement.MovementType.OUT: 'danger',
            StockMovement.MovementType.ADJUSTMENT: 'warning',
        }
        return colors.get(obj.movement_type, 'info'), obj.get_movement_type_display()


@admin.register(StockAdjustment)
class StockAdjustmentAdmin(ReadOnlyAdminMixin, ModelAdmin):
    list_display = ['adjustment_number', 'adjustment_type', 'adjustment_date', 'created_by', 'created_at']
    list_filter = [
        'adjustment_type',
        ('adjustment_date', RangeDateFilter),
    ]
    search_fields = ['adjustment_number', 'notes']
    list_filter_submit = True
    inlines = [StockAdjustmentItemInline]


@admin.register(PendingSideEffect)
class PendingSideEffectAdmin(ReadOnlyAdminMixin, ModelAdmin):
    list_display = ['id', 'kind', 'source_type', 'source_id', 'attempts', 'resolved_badge', 'updated_at']
    list_filter = ['kind', 'resolved_at']
    search_fields = ['last_error']
    list_filter_submit = True

    @display(description=_("Resolved"), label=True)
    def resolved_badge(self, obj):
        if obj.is_resolved:
            return 'success', _("Yes")
        return 'danger', _("No")


@admin.register(StockSettings)
class StockSettingsAdmin(ModelAdmin):
    list_display = ['id', 'allow_negative_stock', 'allow_over_receipt',
                    'number_retry_attempts', 'queue_failed_side_effects']

    def has_add_permission(self, request):
        return not StockSettings.objects.exists()

    def has_delete_permission(self, request, obj=None):
        return False
