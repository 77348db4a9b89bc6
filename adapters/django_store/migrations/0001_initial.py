from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="KeyValueEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "key",
                    models.CharField(
                        help_text="Store key, e.g. sales_invoices or cash_flow_transactions.",
                        max_length=255,
                        unique=True,
                    ),
                ),
                ("value", models.JSONField(default=list)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "db_table": "rbo_key_value_store",
                "ordering": ["key"],
            },
        ),
    ]
