import uuid

import django.core.serializers.json
import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("branches", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="ServiceArea",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, verbose_name="created at")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="updated at")),
                ("created_by", models.CharField(blank=True, db_index=True, default="", max_length=64, verbose_name="created by")),
                ("updated_by", models.CharField(blank=True, default="", max_length=64, verbose_name="updated by")),
                ("name", models.CharField(db_index=True, max_length=100, verbose_name="name")),
                ("code", models.CharField(max_length=20, unique=True, verbose_name="code")),
                ("description", models.CharField(blank=True, default="", max_length=500, verbose_name="description")),
                ("boundaries", models.JSONField(verbose_name="boundaries")),
                ("center_longitude", models.FloatField(verbose_name="center longitude")),
                ("center_latitude", models.FloatField(verbose_name="center latitude")),
                ("min_longitude", models.FloatField(editable=False, null=True, verbose_name="min longitude")),
                ("min_latitude", models.FloatField(editable=False, null=True, verbose_name="min latitude")),
                ("max_longitude", models.FloatField(editable=False, null=True, verbose_name="max longitude")),
                ("max_latitude", models.FloatField(editable=False, null=True, verbose_name="max latitude")),
                ("coverage_radius", models.FloatField(default=0, validators=[django.core.validators.MinValueValidator(0)], verbose_name="coverage radius (km)")),
                ("type", models.CharField(choices=[("delivery", "Delivery"), ("pickup", "Pickup"), ("both", "Both")], db_index=True, default="both", max_length=10, verbose_name="type")),
                ("base_price", models.DecimalField(decimal_places=2, default=0, max_digits=14, verbose_name="base price")),
                ("price_per_km", models.DecimalField(decimal_places=2, default=0, max_digits=14, verbose_name="price per km")),
                ("minimum_distance", models.FloatField(default=0, verbose_name="minimum distance")),
                ("maximum_distance", models.FloatField(default=0, verbose_name="maximum distance")),
                ("special_rates", models.JSONField(blank=True, default=list, verbose_name="special rates")),
                ("status", models.CharField(choices=[("active", "Active"), ("inactive", "Inactive"), ("pending", "Pending")], db_index=True, default="active", max_length=10, verbose_name="status")),
                ("metadata", models.JSONField(blank=True, default=dict, verbose_name="metadata")),
            ],
            options={
                "verbose_name": "service area",
                "ordering": ["name"],
                "indexes": [
                    models.Index(fields=["status", "type"], name="service_area_status_type_idx"),
                    models.Index(
                        fields=["min_longitude", "max_longitude", "min_latitude", "max_latitude"],
                        name="service_area_bbox_idx",
                    ),
                    models.Index(fields=["center_latitude", "center_longitude"], name="service_area_center_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="ServiceAreaHistory",
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
                ("action", models.CharField(choices=[("create", "Create"), ("update", "Update"), ("delete", "Delete"), ("status_change", "Status change"), ("branch_assignment", "Branch assignment"), ("pricing_update", "Pricing update")], db_index=True, max_length=32, verbose_name="action")),
                ("changed_fields", models.JSONField(blank=True, default=list, verbose_name="changed fields")),
            ],
            options={
                "verbose_name": "service area history",
                "verbose_name_plural": "service area history",
                "ordering": ["-performed_at", "-id"],
                "abstract": False,
                "indexes": [models.Index(fields=["entity_id", "performed_at"], name="sa_hist_entity_idx")],
            },
        ),
        migrations.CreateModel(
            name="ServiceAreaBranch",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("assigned_at", models.DateTimeField(default=django.utils.timezone.now, verbose_name="assigned at")),
                ("is_primary", models.BooleanField(default=False, verbose_name="primary")),
                ("branch", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="service_area_assignments", to="branches.branch")),
                ("service_area", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="assignments", to="service_areas.servicearea")),
            ],
            options={
                "verbose_name": "service area branch",
                "ordering": ["-is_primary", "assigned_at"],
                "constraints": [models.UniqueConstraint(fields=("service_area", "branch"), name="uniq_service_area_branch")],
            },
        ),
        migrations.AddField(
            model_name="servicearea",
            name="branches",
            field=models.ManyToManyField(blank=True, related_name="service_areas", through="service_areas.ServiceAreaBranch", to="branches.branch"),
        ),
    ]
