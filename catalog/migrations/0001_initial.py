import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Genre",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=64, unique=True)),
            ],
            options={
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="AnimeSeries",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("mal_id", models.PositiveIntegerField(blank=True, null=True, unique=True)),
                ("title_english", models.CharField(blank=True, default="", max_length=255)),
                ("title_romaji", models.CharField(blank=True, default="", max_length=255)),
                ("synopsis", models.TextField(blank=True, default="")),
                ("poster_url", models.URLField(blank=True, default="", max_length=512)),
                ("status", models.CharField(blank=True, default="", max_length=64)),
                ("release_year", models.PositiveSmallIntegerField(blank=True, null=True)),
                ("score", models.DecimalField(blank=True, decimal_places=2, max_digits=4, null=True)),
                ("episodes_total", models.PositiveIntegerField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("genres", models.ManyToManyField(blank=True, related_name="series", to="catalog.genre")),
            ],
            options={
                "verbose_name_plural": "anime series",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="Manhwa",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("title", models.CharField(max_length=255)),
                ("description", models.TextField(blank=True, default="")),
                ("cover_url", models.URLField(blank=True, default="", max_length=512)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name_plural": "manhwa",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="Episode",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("episode_number", models.PositiveIntegerField()),
                ("title", models.CharField(blank=True, max_length=255, null=True)),
                ("video_urls", models.JSONField(blank=True, null=True)),
                ("raw_file_path", models.CharField(blank=True, default="", max_length=512)),
                (
                    "processing_status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("processing", "Processing"),
                            ("ready", "Ready"),
                            ("partial", "Partial"),
                            ("failed", "Failed"),
                        ],
                        default="pending",
                        max_length=16,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "series",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="episodes",
                        to="catalog.animeseries",
                    ),
                ),
            ],
            options={
                "ordering": ["series", "episode_number"],
            },
        ),
        migrations.AddConstraint(
            model_name="episode",
            constraint=models.UniqueConstraint(fields=("series", "episode_number"), name="unique_episode_number"),
        ),
        migrations.CreateModel(
            name="ManhwaChapter",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("chapter_number", models.PositiveIntegerField()),
                ("title", models.CharField(blank=True, max_length=255, null=True)),
                ("image_urls", models.JSONField(blank=True, default=list)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "manhwa",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="chapters",
                        to="catalog.manhwa",
                    ),
                ),
            ],
            options={
                "ordering": ["manhwa", "chapter_number"],
            },
        ),
        migrations.AddConstraint(
            model_name="manhwachapter",
            constraint=models.UniqueConstraint(fields=("manhwa", "chapter_number"), name="unique_chapter_number"),
        ),
        migrations.CreateModel(
            name="TranscodeJob",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("external_id", models.CharField(blank=True, db_index=True, default="", max_length=128)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("submitted", "Submitted"),
                            ("processing", "Processing"),
                            ("finished", "Finished"),
                            ("error", "Error"),
                        ],
                        default="submitted",
                        max_length=16,
                    ),
                ),
                ("poll_count", models.PositiveIntegerField(default=0)),
                ("outputs", models.JSONField(blank=True, default=list)),
                ("error", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "episode",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="jobs",
                        to="catalog.episode",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="Profile",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("naju_id", models.CharField(max_length=64, unique=True)),
                ("roles", models.JSONField(blank=True, default=list)),
                (
                    "subscription_status",
                    models.CharField(
                        choices=[("none", "None"), ("active", "Active"), ("expired", "Expired")],
                        default="none",
                        max_length=16,
                    ),
                ),
                ("subscription_expires_at", models.DateTimeField(blank=True, null=True)),
                ("avatar_url", models.URLField(blank=True, default="", max_length=512)),
                ("banner_url", models.URLField(blank=True, default="", max_length=512)),
                ("bio", models.TextField(blank=True, default="")),
                ("preferences", models.JSONField(blank=True, default=dict)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "user",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="profile",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
        ),
        migrations.CreateModel(
            name="PaymentReceipt",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("receipt_key", models.CharField(max_length=512)),
                (
                    "status",
                    models.CharField(
                        choices=[("pending", "Pending"), ("approved", "Approved"), ("rejected", "Rejected")],
                        default="pending",
                        max_length=16,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("reviewed_at", models.DateTimeField(blank=True, null=True)),
                (
                    "profile",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="receipts",
                        to="catalog.profile",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="Favorite",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "profile",
                    models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="catalog.profile"),
                ),
                (
                    "series",
                    models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="catalog.animeseries"),
                ),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
        migrations.AddConstraint(
            model_name="favorite",
            constraint=models.UniqueConstraint(fields=("profile", "series"), name="unique_favorite"),
        ),
        migrations.AddField(
            model_name="profile",
            name="favorites",
            field=models.ManyToManyField(
                blank=True,
                related_name="favorited_by",
                through="catalog.Favorite",
                to="catalog.animeseries",
            ),
        ),
    ]
