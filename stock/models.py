import uuid as uuid_lib
from decimal import Decimal

from django.db import models
from django.utils import timezone


class Ingredient(models.Model):
    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    name = models.CharField(max_length=200, unique=True)
    unit = models.CharField(max_length=20, default="kg")
    # Only StockMovementService writes this field
    stock_quantity = models.DecimalField(max_digits=15, decimal_places=4, default=0)
    min_stock = models.DecimalField(max_digits=15, decimal_places=4, default=0)
    last_price = models.DecimalField(max_digits=15, decimal_places=4, default=0)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "ingredients"
        ordering = ["name"]

    def __str__(self):
        return f"{self.name} ({self.unit})"

    @property
    def is_low_stock(self):
        return self.stock_quantity < self.min_stock


class Vendor(models.Model):
    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    name = models.CharField(max_length=200)
    contact_person = models.CharField(max_length=100, blank=True, default="")
    phone = models.CharField(max_length=50, blank=True, default="")
    email = models.EmailField(blank=True, default="")
    address = models.TextField(blank=True, default="")
    is_active = models.BooleanField(default=True)
    notes = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "vendors"
        ordering = ["name"]

    def __str__(self):
        return self.name


class Intend(models.Model):
    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        PARTIALLY_FULFILLED = "partially_fulfilled", "Partially Fulfilled"
        FULFILLED = "fulfilled", "Fulfilled"

    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    intend_number = models.CharField(max_length=50, unique=True)
    vendor = models.ForeignKey(
        Vendor,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="intends",
    )
    intend_date = models.DateField(default=timezone.localdate)
    # Derived by IntendFulfillmentService.recompute
    status = models.CharField(
        max_length=30, choices=Status.choices, default=Status.PENDING
    )
    notes = models.TextField(blank=True, default="")
    created_by = models.CharField(max_length=100, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "intends"
        ordering = ["-intend_date", "-created_at"]

    def __str__(self):
        return self.intend_number


class IntendItem(models.Model):
    intend = models.ForeignKey(
        Intend, on_delete=models.CASCADE, related_name="items"
    )
    ingredient = models.ForeignKey(
        Ingredient, on_delete=models.PROTECT, related_name="intend_items"
    )
    quantity = models.DecimalField(max_digits=15, decimal_places=4)
    remarks = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "intend_items"
        unique_together = [("intend", "ingredient")]

    def __str__(self):
        return f"{self.ingredient.name} × {self.quantity}"


class PurchaseOrder(models.Model):
    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        CONFIRMED = "confirmed", "Confirmed"
        PARTIALLY_RECEIVED = "partially_received", "Partially Received"
        RECEIVED = "received", "Received"

    class PaymentStatus(models.TextChoices):
        UNPAID = "unpaid", "Unpaid"
        PARTIAL = "partial", "Partial"
        PAID = "paid", "Paid"

    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    po_number = models.CharField(max_length=50, unique=True)
    intend = models.ForeignKey(
        Intend,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="purchase_orders",
    )
    vendor = models.ForeignKey(
        Vendor, on_delete=models.PROTECT, related_name="purchase_orders"
    )
    order_date = models.DateField(default=timezone.localdate)
    expected_delivery_date = models.DateField(null=True, blank=True)
    status = models.CharField(
        max_length=30, choices=Status.choices, default=Status.PENDING
    )

    # Frozen at creation
    total_amount = models.DecimalField(max_digits=15, decimal_places=4, default=0)
    # Receipt caches, recomputed after every GRN
    total_items_count = models.PositiveIntegerField(default=0)
    received_items_count = models.PositiveIntegerField(default=0)
    received_percentage = models.DecimalField(max_digits=5, decimal_places=2, default=0)
    # Payment caches, recomputed after every payment
    total_paid = models.DecimalField(max_digits=15, decimal_places=4, default=0)
    payment_status = models.CharField(
        max_length=20, choices=PaymentStatus.choices, default=PaymentStatus.UNPAID
    )
    actual_receivable_amount = models.DecimalField(
        max_digits=15, decimal_places=4, null=True, blank=True,
        help_text="Overrides total_amount once the true receivable value is known",
    )

    notes = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "purchase_orders"
        ordering = ["-order_date", "-created_at"]

    def __str__(self):
        return self.po_number

    @property
    def receivable_amount(self) -> Decimal:
        if self.actual_receivable_amount is not None:
            return self.actual_receivable_amount
        return self.total_amount

    @property
    def outstanding_amount(self) -> Decimal:
        return self.receivable_amount - self.total_paid


class POItem(models.Model):
    purchase_order = models.ForeignKey(
        PurchaseOrder, on_delete=models.CASCADE, related_name="items"
    )
    ingredient = models.ForeignKey(
        Ingredient, on_delete=models.PROTECT, related_name="po_items"
    )
    # The fulfillment link: an intend item is "in a PO" iff this row exists
    intend_item = models.OneToOneField(
        IntendItem,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="po_item",
    )
    quantity_ordered = models.DecimalField(max_digits=15, decimal_places=4)
    quantity_received = models.DecimalField(
        max_digits=15, decimal_places=4, default=0
    )
    unit_price = models.DecimalField(max_digits=15, decimal_places=4)
    total_price = models.DecimalField(max_digits=15, decimal_places=4)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "po_items"
        ordering = ["id"]

    def __str__(self):
        return f"{self.ingredient.name} × {self.quantity_ordered}"

    @property
    def quantity_pending(self) -> Decimal:
        return max(self.quantity_ordered - self.quantity_received, Decimal("0"))

    @property
    def is_fully_received(self) -> bool:
        return self.quantity_received >= self.quantity_ordered


class GRN(models.Model):
    class Status(models.TextChoices):
        COMPLETED = "completed", "Completed"

    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    grn_number = models.CharField(max_length=50, unique=True)
    purchase_order = models.ForeignKey(
        PurchaseOrder, on_delete=models.PROTECT, related_name="grns"
    )
    received_date = models.DateField()
    received_by = models.CharField(max_length=100, blank=True, default="")
    status = models.CharField(
        max_length=20, choices=Status.choices, default=Status.COMPLETED
    )
    notes = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "grns"
        verbose_name = "GRN"
        verbose_name_plural = "GRNs"
        ordering = ["-received_date", "-created_at"]

    def __str__(self):
        return self.grn_number


class GRNItem(models.Model):
    grn = models.ForeignKey(GRN, on_delete=models.CASCADE, related_name="items")
    po_item = models.ForeignKey(
        POItem, on_delete=models.PROTECT, related_name="grn_items"
    )
    ingredient = models.ForeignKey(
        Ingredient, on_delete=models.PROTECT, related_name="grn_items"
    )
    # Snapshots of the PO line at receipt time
    quantity_ordered = models.DecimalField(max_digits=15, decimal_places=4)
    unit_price_ordered = models.DecimalField(max_digits=15, decimal_places=4)
    quantity_received = models.DecimalField(max_digits=15, decimal_places=4)
    unit_price_actual = models.DecimalField(max_digits=15, decimal_places=4)
    total_amount = models.DecimalField(max_digits=15, decimal_places=4)
    remarks = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "grn_items"
        ordering = ["id"]

    def __str__(self):
        return f"{self.ingredient.name} × {self.quantity_received}"

    @property
    def variance(self) -> Decimal:
        return self.quantity_received - self.quantity_ordered

    @property
    def price_variance(self) -> Decimal:
        return self.unit_price_actual - self.unit_price_ordered


class Payment(models.Model):
    class Method(models.TextChoices):
        CASH = "cash", "Cash"
        UPI = "upi", "UPI"
        BANK_TRANSFER = "bank_transfer", "Bank Transfer"
        CARD = "card", "Card"
        CHEQUE = "cheque", "Cheque"

    class Status(models.TextChoices):
        COMPLETED = "completed", "Completed"

    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    payment_number = models.CharField(max_length=50, unique=True)
    purchase_order = models.ForeignKey(
        PurchaseOrder, on_delete=models.PROTECT, related_name="payments"
    )
    vendor = models.ForeignKey(
        Vendor, on_delete=models.PROTECT, related_name="payments"
    )
    payment_date = models.DateField()
    amount = models.DecimalField(max_digits=15, decimal_places=4)
    payment_method = models.CharField(max_length=20, choices=Method.choices)
    transaction_reference = models.CharField(max_length=100, blank=True, default="")
    transaction_date = models.DateField(null=True, blank=True)
    bank_name = models.CharField(max_length=100, blank=True, default="")
    remarks = models.TextField(blank=True, default="")
    status = models.CharField(
        max_length=20, choices=Status.choices, default=Status.COMPLETED
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "payments"
        ordering = ["-payment_date", "-created_at"]

    def __str__(self):
        return f"{self.payment_number} | {self.amount}"


class StockMovement(models.Model):
    class MovementType(models.TextChoices):
        IN = "in", "In"
        OUT = "out", "Out"
        ADJUSTMENT = "adjustment", "Adjustment"

    class ReferenceType(models.TextChoices):
        GRN = "grn", "Goods Receipt"
        ADJUSTMENT = "adjustment", "Stock Adjustment"
        SALE = "sale", "Sale"
        MANUAL = "manual", "Manual"

    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    ingredient = models.ForeignKey(
        Ingredient, on_delete=models.PROTECT, related_name="movements"
    )
    movement_type = models.CharField(
        max_length=20, choices=MovementType.choices, db_index=True
    )
    # Signed: equals quantity_after - quantity_before
    quantity = models.DecimalField(max_digits=15, decimal_places=4)
    quantity_before = models.DecimalField(max_digits=15, decimal_places=4)
    quantity_after = models.DecimalField(max_digits=15, decimal_places=4)
    unit_cost = models.DecimalField(
        max_digits=15, decimal_places=4, null=True, blank=True
    )

    # Generic reference to source document
    reference_type = models.CharField(
        max_length=20, choices=ReferenceType.choices, blank=True, default=""
    )
    reference_id = models.PositiveIntegerField(null=True, blank=True)

    remarks = models.TextField(blank=True, default="")
    movement_date = models.DateTimeField(default=timezone.now, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "stock_movements"
        ordering = ["-movement_date", "-id"]
        indexes = [
            models.Index(fields=["ingredient", "movement_date"], name="stock_mvmt_ingredient_date_idx"),
            models.Index(fields=["reference_type", "reference_id"], name="stock_mvmt_reference_idx"),
        ]

    def __str__(self):
        return f"{self.ingredient.name} {self.quantity:+} ({self.get_movement_type_display()})"


class StockAdjustment(models.Model):
    class AdjustmentType(models.TextChoices):
        PHYSICAL_COUNT = "physical_count", "Physical Count"
        WASTAGE = "wastage", "Wastage"
        LOSS = "loss", "Loss"
        FOUND = "found", "Found"
        OTHER = "other", "Other"

    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    adjustment_number = models.CharField(max_length=50, unique=True)
    adjustment_type = models.CharField(
        max_length=20, choices=AdjustmentType.choices
    )
    adjustment_date = models.DateField()
    notes = models.TextField(blank=True, default="")
    created_by = models.CharField(max_length=100, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "stock_adjustments"
        ordering = ["-adjustment_date", "-created_at"]

    def __str__(self):
        return self.adjustment_number


class StockAdjustmentItem(models.Model):
    adjustment = models.ForeignKey(
        StockAdjustment, on_delete=models.CASCADE, related_name="items"
    )
    ingredient = models.ForeignKey(
        Ingredient, on_delete=models.PROTECT, related_name="adjustment_items"
    )
    system_quantity = models.DecimalField(max_digits=15, decimal_places=4)
    actual_quantity = models.DecimalField(max_digits=15, decimal_places=4)
    remarks = models.TextField(blank=True, default="")

    class Meta:
        db_table = "stock_adjustment_items"
        ordering = ["id"]

    def __str__(self):
        return f"{self.ingredient.name}: {self.system_quantity} → {self.actual_quantity}"

    @property
    def variance(self) -> Decimal:
        return self.actual_quantity - self.system_quantity


class DailySequence(models.Model):
    """
    Per-day counter row for document numbers. Locked with select_for_update
    by NumberingService.next().
    """

    kind = models.CharField(max_length=10)
    date = models.DateField()
    last_value = models.PositiveIntegerField(default=0)

    class Meta:
        db_table = "daily_sequences"
        unique_together = [("kind", "date")]

    def __str__(self):
        return f"{self.kind} {self.date:%Y%m%d} #{self.last_value}"


class PendingSideEffect(models.Model):
    """
    Advisory write that failed during a receipt or PO generation.
    Replayed by the retry_side_effects management command.
    """

    class Kind(models.TextChoices):
        LAST_PRICE = "last_price", "Ingredient Last Price"
        STOCK_MOVEMENT = "stock_movement", "Stock Movement"

    kind = models.CharField(max_length=30, choices=Kind.choices)
    payload = models.JSONField(default=dict)
    source_type = models.CharField(max_length=20, blank=True, default="")
    source_id = models.PositiveIntegerField(null=True, blank=True)
    attempts = models.PositiveIntegerField(default=1)
    last_error = models.TextField(blank=True, default="")
    resolved_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "pending_side_effects"
        ordering = ["created_at"]

    def __str__(self):
        return f"{self.get_kind_display()} for {self.source_type} #{self.source_id}"

    @property
    def is_resolved(self):
        return self.resolved_at is not None


class StockSettings(models.Model):
    """
    Singleton settings table. Use StockSettings.load() to get the instance.
    """

    allow_negative_stock = models.BooleanField(default=False)
    allow_over_receipt = models.BooleanField(default=True)
    number_retry_attempts = models.PositiveSmallIntegerField(default=3)
    queue_failed_side_effects = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "stock_settings"
        verbose_name = "stock settings"
        verbose_name_plural = "stock settings"

    def save(self, *args, **kwargs):
        # Enforce singleton: always use pk=1
        self.pk = 1
        super().save(*args, **kwargs)

    @classmethod
    def load(cls):
        obj, _ = cls.objects.get_or_create(pk=1)
        return obj

    def __str__(self):
        return "Stock Settings"
