from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="ProcessedWebhook",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("provider", models.CharField(choices=[("chip", "CHIP")], max_length=40)),
                ("external_event_id", models.CharField(max_length=255)),
                ("status", models.CharField(blank=True, max_length=40)),
                ("raw_payload", models.JSONField(blank=True, null=True)),
                ("received_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "ordering": ["-received_at"],
                "unique_together": {("provider", "external_event_id")},
            },
        ),
    ]
