import uuid

from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("orders", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Shipment",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("carrier", models.CharField(max_length=100)),
                ("shipment_id", models.CharField(blank=True, db_index=True, max_length=100)),
                ("tracking_number", models.CharField(blank=True, db_index=True, max_length=100)),
                ("status", models.CharField(choices=[("pickup_scheduled", "Pickup Scheduled"), ("picked_up", "Picked Up"), ("in_transit", "In Transit"), ("out_for_delivery", "Out for Delivery"), ("delivered", "Delivered"), ("cancelled", "Cancelled"), ("failed", "Failed")], db_index=True, default="pickup_scheduled", max_length=32)),
                ("pickup_address", models.JSONField(default=dict)),
                ("delivery_address", models.JSONField(default=dict)),
                ("weight", models.DecimalField(decimal_places=2, help_text="kg", max_digits=8)),
                ("dimensions", models.JSONField(default=dict, help_text="length/width/height in cm")),
                ("estimated_delivery", models.DateTimeField(blank=True, null=True)),
                ("actual_delivery", models.DateTimeField(blank=True, null=True)),
                ("shipment_data", models.JSONField(blank=True, default=dict)),
                ("order", models.OneToOneField(on_delete=django.db.models.deletion.PROTECT, related_name="shipment", to="orders.order")),
            ],
        ),
    ]
