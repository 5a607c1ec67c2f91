import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('customer', '0001_initial'),
        ('finance', '0001_initial'),
        ('home', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='ManagedDevice',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('device_number', models.CharField(help_text='Device identifier in the device management backend', max_length=100)),
                ('imei', models.CharField(blank=True, max_length=20, null=True)),
                ('serial_number', models.CharField(blank=True, max_length=50, null=True)),
                ('brand', models.CharField(blank=True, max_length=50, null=True)),
                ('model', models.CharField(blank=True, max_length=100, null=True)),
                ('status', models.CharField(choices=[('active', 'Active'), ('locked', 'Locked'), ('wiped', 'Wiped'), ('returned', 'Returned'), ('lost', 'Lost')], default='active', max_length=20)),
                ('last_locked_at', models.DateTimeField(blank=True, null=True)),
                ('last_unlocked_at', models.DateTimeField(blank=True, null=True)),
                ('lock_reason', models.CharField(blank=True, max_length=255, null=True)),
                ('mdm_configuration_id', models.CharField(blank=True, help_text='Configuration profile currently applied in the backend', max_length=50, null=True)),
                ('notes', models.TextField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('customer', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='devices', to='customer.customer')),
                ('sale', models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='device', to='finance.sale')),
                ('store', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='devices', to='home.store')),
            ],
            options={
                'db_table': 'devices_mdm',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['device_number'], name='devices_number_idx'),
                    models.Index(fields=['imei'], name='devices_imei_idx'),
                    models.Index(fields=['store', 'status'], name='devices_store_status_idx'),
                    models.Index(fields=['status'], name='devices_status_idx'),
                ],
            },
        ),
    ]
