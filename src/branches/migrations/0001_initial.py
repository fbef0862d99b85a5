import uuid

import django.core.serializers.json
import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Branch",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, verbose_name="created at")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="updated at")),
                ("created_by", models.CharField(blank=True, db_index=True, default="", max_length=64, verbose_name="created by")),
                ("updated_by", models.CharField(blank=True, default="", max_length=64, verbose_name="updated by")),
                ("status_history", models.JSONField(blank=True, default=list, verbose_name="status history")),
                ("path", models.CharField(blank=True, db_index=True, default="", editable=False, max_length=2048, verbose_name="path")),
                ("level", models.PositiveIntegerField(db_index=True, default=0, editable=False, verbose_name="level")),
                ("code", models.CharField(max_length=20, unique=True, verbose_name="code")),
                ("name", models.CharField(db_index=True, max_length=100, verbose_name="name")),
                ("type", models.CharField(choices=[("headquarters", "Headquarters"), ("regional", "Regional"), ("branch", "Branch")], db_index=True, max_length=20, verbose_name="type")),
                ("street", models.CharField(max_length=200, verbose_name="street")),
                ("city", models.CharField(db_index=True, max_length=100, verbose_name="city")),
                ("state", models.CharField(db_index=True, max_length=100, verbose_name="state")),
                ("postal_code", models.CharField(max_length=20, verbose_name="postal code")),
                ("country", models.CharField(default="Indonesia", max_length=100, verbose_name="country")),
                ("longitude", models.FloatField(blank=True, null=True, verbose_name="longitude")),
                ("latitude", models.FloatField(blank=True, null=True, verbose_name="latitude")),
                ("phone", models.CharField(max_length=20, verbose_name="phone")),
                ("email", models.EmailField(max_length=254, verbose_name="email")),
                ("fax", models.CharField(blank=True, default="", max_length=20, verbose_name="fax")),
                ("website", models.URLField(blank=True, default="", verbose_name="website")),
                ("employee_count", models.PositiveIntegerField(default=0, verbose_name="employees")),
                ("vehicle_count", models.PositiveIntegerField(default=0, verbose_name="vehicles")),
                ("storage_capacity", models.FloatField(default=0, validators=[django.core.validators.MinValueValidator(0)], verbose_name="storage capacity")),
                ("max_daily_packages", models.PositiveIntegerField(default=0, verbose_name="max daily packages")),
                ("monthly_revenue", models.DecimalField(decimal_places=2, default=0, max_digits=16, validators=[django.core.validators.MinValueValidator(0)], verbose_name="monthly revenue")),
                ("monthly_packages", models.PositiveIntegerField(default=0, verbose_name="monthly packages")),
                ("customer_satisfaction", models.FloatField(default=0, validators=[django.core.validators.MinValueValidator(0), django.core.validators.MaxValueValidator(100)], verbose_name="customer satisfaction")),
                ("delivery_success_rate", models.FloatField(default=0, validators=[django.core.validators.MinValueValidator(0), django.core.validators.MaxValueValidator(100)], verbose_name="delivery success rate")),
                ("metrics_updated_at", models.DateTimeField(default=django.utils.timezone.now, verbose_name="metrics updated at")),
                ("status", models.CharField(choices=[("active", "Active"), ("inactive", "Inactive"), ("pending", "Pending"), ("closed", "Closed")], db_index=True, default="active", max_length=20, verbose_name="status")),
                ("parent", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="children", to="branches.branch", verbose_name="parent branch")),
            ],
            options={
                "verbose_name": "branch",
                "verbose_name_plural": "branches",
                "ordering": ["name"],
                "indexes": [models.Index(fields=["latitude", "longitude"], name="branch_location_idx")],
            },
        ),
        migrations.CreateModel(
            name="BranchHistory",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("entity_id", models.UUIDField(db_index=True, verbose_name="entity")),
                ("field", models.CharField(blank=True, db_index=True, default="", max_length=100, verbose_name="field")),
                ("old_value", models.JSONField(blank=True, encoder=django.core.serializers.json.DjangoJSONEncoder, null=True, verbose_name="old value")),
                ("new_value", models.JSONField(blank=True, encoder=django.core.serializers.json.DjangoJSONEncoder, null=True, verbose_name="new value")),
                ("performed_by", models.CharField(blank=True, default="", max_length=64, verbose_name="performed by")),
                ("performed_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now, verbose_name="performed at")),
                ("reason", models.CharField(blank=True, default="", max_length=255, verbose_name="reason")),
                ("metadata", models.JSONField(blank=True, default=dict, encoder=django.core.serializers.json.DjangoJSONEncoder, verbose_name="metadata")),
                ("action", models.CharField(choices=[("create", "Create"), ("update", "Update"), ("delete", "Delete"), ("status_change", "Status change"), ("resource_update", "Resource update"), ("performance_update", "Performance update"), ("document_add", "Document added"), ("document_update", "Document updated"), ("document_delete", "Document deleted"), ("operational_hours_update", "Operational hours update")], db_index=True, max_length=32, verbose_name="action")),
            ],
            options={
                "verbose_name": "branch history",
                "verbose_name_plural": "branch history",
                "ordering": ["-performed_at", "-id"],
                "abstract": False,
                "indexes": [models.Index(fields=["entity_id", "performed_at"], name="branch_hist_entity_idx")],
            },
        ),
        migrations.CreateModel(
            name="BranchDocument",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, verbose_name="created at")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="updated at")),
                ("name", models.CharField(max_length=100, verbose_name="name")),
                ("type", models.CharField(choices=[("license", "License"), ("permit", "Permit"), ("certificate", "Certificate"), ("contract", "Contract"), ("other", "Other")], max_length=20, verbose_name="type")),
                ("file_url", models.URLField(max_length=500, verbose_name="file URL")),
                ("uploaded_at", models.DateTimeField(default=django.utils.timezone.now, verbose_name="uploaded at")),
                ("expires_at", models.DateTimeField(blank=True, null=True, verbose_name="expires at")),
                ("is_active", models.BooleanField(default=True, verbose_name="active")),
                ("branch", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="documents", to="branches.branch")),
            ],
            options={
                "verbose_name": "branch document",
                "ordering": ["-uploaded_at"],
            },
        ),
        migrations.CreateModel(
            name="BranchOperatingHours",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("day", models.CharField(choices=[("monday", "Monday"), ("tuesday", "Tuesday"), ("wednesday", "Wednesday"), ("thursday", "Thursday"), ("friday", "Friday"), ("saturday", "Saturday"), ("sunday", "Sunday")], max_length=10, verbose_name="day")),
                ("is_open", models.BooleanField(default=True, verbose_name="open")),
                ("open_time", models.CharField(default="08:00", max_length=5, verbose_name="opens at")),
                ("close_time", models.CharField(default="17:00", max_length=5, verbose_name="closes at")),
                ("branch", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="operating_hours", to="branches.branch")),
            ],
            options={
                "verbose_name": "operating hours",
                "verbose_name_plural": "operating hours",
                "constraints": [models.UniqueConstraint(fields=("branch", "day"), name="uniq_branch_operating_day")],
            },
        ),
    ]
