import uuid

import django.core.serializers.json
import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


HISTORY_FIELDS = [
    ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
    ("entity_id", models.UUIDField(db_index=True, verbose_name="entity")),
    ("field", models.CharField(blank=True, db_index=True, default="", max_length=100, verbose_name="field")),
    ("old_value", models.JSONField(blank=True, encoder=django.core.serializers.json.DjangoJSONEncoder, null=True, verbose_name="old value")),
    ("new_value", models.JSONField(blank=True, encoder=django.core.serializers.json.DjangoJSONEncoder, null=True, verbose_name="new value")),
    ("performed_by", models.CharField(blank=True, default="", max_length=64, verbose_name="performed by")),
    ("performed_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now, verbose_name="performed at")),
    ("reason", models.CharField(blank=True, default="", max_length=255, verbose_name="reason")),
    ("metadata", models.JSONField(blank=True, default=dict, encoder=django.core.serializers.json.DjangoJSONEncoder, verbose_name="metadata")),
]


def _history_fields(actions):
    fields = [(name, field.clone()) for name, field in HISTORY_FIELDS]
    fields.append(
        ("action", models.CharField(choices=actions, db_index=True, max_length=32, verbose_name="action")),
    )
    return fields


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("branches", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Division",
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
                ("description", models.CharField(blank=True, default="", max_length=500, verbose_name="description")),
                ("kpis", models.JSONField(blank=True, default=list, verbose_name="KPIs")),
                ("metrics_updated_at", models.DateTimeField(default=django.utils.timezone.now, verbose_name="metrics updated at")),
                ("budget_allocated", models.DecimalField(decimal_places=2, default=0, max_digits=18, validators=[django.core.validators.MinValueValidator(0)], verbose_name="allocated budget")),
                ("budget_spent", models.DecimalField(decimal_places=2, default=0, max_digits=18, validators=[django.core.validators.MinValueValidator(0)], verbose_name="spent budget")),
                ("budget_remaining", models.DecimalField(decimal_places=2, default=0, max_digits=18, verbose_name="remaining budget")),
                ("budget_currency", models.CharField(default="IDR", max_length=3, verbose_name="currency")),
                ("fiscal_year", models.CharField(blank=True, default="", max_length=9, verbose_name="fiscal year")),
                ("budget_updated_at", models.DateTimeField(default=django.utils.timezone.now, verbose_name="budget updated at")),
                ("status", models.CharField(choices=[("active", "Active"), ("inactive", "Inactive"), ("restructuring", "Restructuring")], db_index=True, default="active", max_length=20, verbose_name="status")),
                ("branch", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="divisions", to="branches.branch", verbose_name="branch")),
                ("parent", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="children", to="divisions.division", verbose_name="parent division")),
            ],
            options={
                "verbose_name": "division",
                "ordering": ["name"],
                "indexes": [models.Index(fields=["branch", "status"], name="division_branch_status_idx")],
            },
        ),
        migrations.CreateModel(
            name="Position",
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
                ("title", models.CharField(db_index=True, max_length=100, verbose_name="title")),
                ("description", models.CharField(blank=True, default="", max_length=500, verbose_name="description")),
                ("requirements", models.JSONField(blank=True, default=dict, verbose_name="requirements")),
                ("responsibilities", models.JSONField(blank=True, default=list, verbose_name="responsibilities")),
                ("authorities", models.JSONField(blank=True, default=list, verbose_name="authorities")),
                ("salary_grade", models.CharField(db_index=True, max_length=20, verbose_name="salary grade")),
                ("salary_min", models.DecimalField(decimal_places=2, max_digits=18, validators=[django.core.validators.MinValueValidator(0)], verbose_name="minimum salary")),
                ("salary_max", models.DecimalField(decimal_places=2, max_digits=18, validators=[django.core.validators.MinValueValidator(0)], verbose_name="maximum salary")),
                ("salary_currency", models.CharField(default="IDR", max_length=3, verbose_name="salary currency")),
                ("benefits", models.JSONField(blank=True, default=list, verbose_name="benefits")),
                ("status", models.CharField(choices=[("active", "Active"), ("inactive", "Inactive"), ("draft", "Draft")], db_index=True, default="active", max_length=20, verbose_name="status")),
                ("is_vacant", models.BooleanField(db_index=True, default=True, verbose_name="vacant")),
                ("headcount_authorized", models.PositiveIntegerField(default=1, verbose_name="authorized headcount")),
                ("headcount_filled", models.PositiveIntegerField(default=0, verbose_name="filled headcount")),
                ("division", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="positions", to="divisions.division", verbose_name="division")),
                ("reporting_to", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="direct_reports", to="divisions.position", verbose_name="reports to")),
            ],
            options={
                "verbose_name": "position",
                "ordering": ["title"],
                "indexes": [models.Index(fields=["division", "status"], name="position_division_status_idx")],
            },
        ),
        migrations.AddField(
            model_name="division",
            name="head_position",
            field=models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="headed_divisions", to="divisions.position", verbose_name="head position"),
        ),
        migrations.CreateModel(
            name="DivisionHistory",
            fields=_history_fields([
                ("create", "Create"),
                ("update", "Update"),
                ("delete", "Delete"),
                ("status_change", "Status change"),
                ("budget_update", "Budget update"),
                ("kpi_update", "KPI update"),
            ]),
            options={
                "verbose_name": "division history",
                "verbose_name_plural": "division history",
                "ordering": ["-performed_at", "-id"],
                "abstract": False,
                "indexes": [models.Index(fields=["entity_id", "performed_at"], name="division_hist_entity_idx")],
            },
        ),
        migrations.CreateModel(
            name="PositionHistory",
            fields=_history_fields([
                ("create", "Create"),
                ("update", "Update"),
                ("delete", "Delete"),
                ("status_change", "Status change"),
                ("reporting_change", "Reporting change"),
                ("vacancy_change", "Vacancy change"),
            ]),
            options={
                "verbose_name": "position history",
                "verbose_name_plural": "position history",
                "ordering": ["-performed_at", "-id"],
                "abstract": False,
                "indexes": [models.Index(fields=["entity_id", "performed_at"], name="position_hist_entity_idx")],
            },
        ),
    ]
