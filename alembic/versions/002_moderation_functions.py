"""moderation and analytics database functions

Revision ID: 002_moderation_functions
Revises: 001_initial
Create Date: 2026-10-18

Installs the PL/pgSQL functions app/rpc.py calls. Each moderation
function applies the state change, its admin_activity_logs row and the
owner notification in one transaction and returns whether the target
existed. On non-PostgreSQL databases this revision is a no-op (the
services fall back to sequential ORM writes).
"""
from typing import Sequence, Union

from alembic import op

revision: str = "002_moderation_functions"
down_revision: Union[str, None] = "001_initial"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

_NOW = "timezone('utc', now())"

_NOTIFY = f"""
CREATE OR REPLACE FUNCTION _notify_owner(
    p_user_id text, p_type text, p_title text, p_message text, p_severity text,
    p_entity_type text, p_entity_id text
) RETURNS void LANGUAGE plpgsql AS $$
BEGIN
    IF p_user_id IS NULL THEN
        RETURN;
    END IF;
    INSERT INTO provider_notifications
        (id, user_id, type, title, message, severity, is_read,
         related_entity_type, related_entity_id, created_at)
    VALUES
        (gen_random_uuid()::text, p_user_id, p_type, p_title, p_message, p_severity, false,
         p_entity_type, p_entity_id, {_NOW});
END;
$$;

CREATE OR REPLACE FUNCTION _log_admin_action(
    p_admin_id text, p_action text, p_target_type text, p_target_id text,
    p_target_email text, p_details json
) RETURNS void LANGUAGE plpgsql AS $$
BEGIN
    INSERT INTO admin_activity_logs
        (id, admin_id, action_type, target_type, target_id, target_email, details, created_at)
    VALUES
        (gen_random_uuid()::text, p_admin_id, p_action, p_target_type, p_target_id,
         p_target_email, COALESCE(p_details, '{{}}'::json), {_NOW});
END;
$$;
"""

_ACCOUNTS = f"""
CREATE OR REPLACE FUNCTION suspend_user_with_logging(p_user_id text, p_admin_id text, p_reason text)
RETURNS boolean LANGUAGE plpgsql AS $$
DECLARE v_email text;
BEGIN
    UPDATE profiles
       SET status = 'suspended', suspension_reason = p_reason, suspended_at = {_NOW}, updated_at = {_NOW}
     WHERE id = p_user_id AND deleted_at IS NULL
    RETURNING email INTO v_email;
    IF NOT FOUND THEN
        RETURN false;
    END IF;
    PERFORM _log_admin_action(p_admin_id, 'suspend', 'user', p_user_id, v_email,
                              json_build_object('reason', p_reason));
    PERFORM _notify_owner(p_user_id, 'account_suspended', 'Account suspended',
                          'Your account has been suspended. Reason: ' || p_reason,
                          'warning', 'user', p_user_id);
    RETURN true;
END;
$$;

CREATE OR REPLACE FUNCTION activate_user_with_logging(p_user_id text, p_admin_id text)
RETURNS boolean LANGUAGE plpgsql AS $$
DECLARE v_email text; v_previous text;
BEGIN
    SELECT email, status INTO v_email, v_previous
      FROM profiles WHERE id = p_user_id AND deleted_at IS NULL FOR UPDATE;
    IF NOT FOUND THEN
        RETURN false;
    END IF;
    UPDATE profiles
       SET status = 'approved', suspension_reason = NULL, suspended_at = NULL, updated_at = {_NOW}
     WHERE id = p_user_id;
    PERFORM _log_admin_action(p_admin_id, 'activate', 'user', p_user_id, v_email,
                              json_build_object('previous_status', v_previous));
    PERFORM _notify_owner(p_user_id, 'account_activated', 'Account activated',
                          'Your account is active again.', 'success', 'user', p_user_id);
    RETURN true;
END;
$$;

CREATE OR REPLACE FUNCTION soft_delete_user_with_logging(p_user_id text, p_admin_id text, p_reason text)
RETURNS boolean LANGUAGE plpgsql AS $$
DECLARE v_email text;
BEGIN
    UPDATE profiles
       SET deleted_at = {_NOW}, deletion_reason = p_reason, updated_at = {_NOW}
     WHERE id = p_user_id AND deleted_at IS NULL
    RETURNING email INTO v_email;
    IF NOT FOUND THEN
        RETURN false;
    END IF;
    PERFORM _log_admin_action(p_admin_id, 'delete', 'user', p_user_id, v_email,
                              json_build_object('reason', p_reason));
    RETURN true;
END;
$$;
"""

_PROVIDERS = f"""
CREATE OR REPLACE FUNCTION approve_provider_with_notification(p_provider_id text, p_admin_id text)
RETURNS boolean LANGUAGE plpgsql AS $$
DECLARE v_user_id text; v_name text; v_email text;
BEGIN
    SELECT pr.user_id, pr.business_name, pr.business_email INTO v_user_id, v_name, v_email
      FROM providers pr JOIN profiles p ON p.id = pr.user_id
     WHERE pr.id = p_provider_id AND p.deleted_at IS NULL FOR UPDATE OF pr;
    IF NOT FOUND THEN
        RETURN false;
    END IF;
    UPDATE profiles SET status = 'approved', updated_at = {_NOW} WHERE id = v_user_id;
    UPDATE providers
       SET approved_at = {_NOW}, approved_by = p_admin_id, subscription_status = 'active', updated_at = {_NOW}
     WHERE id = p_provider_id;
    PERFORM _log_admin_action(p_admin_id, 'approve', 'provider', p_provider_id, v_email,
                              json_build_object('business_name', v_name));
    PERFORM _notify_owner(v_user_id, 'provider_approved', 'Provider account approved',
                          v_name || ' is approved. You can now publish listings.',
                          'success', 'provider', p_provider_id);
    RETURN true;
END;
$$;

CREATE OR REPLACE FUNCTION reject_provider_with_notification(p_provider_id text, p_admin_id text, p_reason text)
RETURNS boolean LANGUAGE plpgsql AS $$
DECLARE v_user_id text; v_email text;
BEGIN
    SELECT pr.user_id, pr.business_email INTO v_user_id, v_email
      FROM providers pr JOIN profiles p ON p.id = pr.user_id
     WHERE pr.id = p_provider_id AND p.deleted_at IS NULL FOR UPDATE OF pr;
    IF NOT FOUND THEN
        RETURN false;
    END IF;
    UPDATE profiles SET status = 'rejected', updated_at = {_NOW} WHERE id = v_user_id;
    UPDATE providers
       SET approved_at = NULL, approved_by = p_admin_id, subscription_status = 'inactive', updated_at = {_NOW}
     WHERE id = p_provider_id;
    PERFORM _log_admin_action(p_admin_id, 'reject', 'provider', p_provider_id, v_email,
                              json_build_object('reason', p_reason));
    PERFORM _notify_owner(v_user_id, 'provider_rejected', 'Provider application rejected',
                          'Your provider application was rejected. Reason: ' || p_reason,
                          'error', 'provider', p_provider_id);
    RETURN true;
END;
$$;
"""

_LISTINGS = f"""
CREATE OR REPLACE FUNCTION approve_property_with_logging(p_property_id text, p_admin_id text)
RETURNS boolean LANGUAGE plpgsql AS $$
DECLARE v_title text; v_owner text;
BEGIN
    UPDATE properties
       SET status = 'published', published_at = {_NOW}, approved_by = p_admin_id,
           rejection_reason = NULL, rejected_at = NULL, rejected_by = NULL, updated_at = {_NOW}
     WHERE id = p_property_id
    RETURNING title INTO v_title;
    IF NOT FOUND THEN
        RETURN false;
    END IF;
    SELECT pr.user_id INTO v_owner
      FROM properties p JOIN providers pr ON pr.id = p.provider_id WHERE p.id = p_property_id;
    PERFORM _log_admin_action(p_admin_id, 'approve', 'property', p_property_id, NULL,
                              json_build_object('title', v_title));
    PERFORM _notify_owner(v_owner, 'property_approved', 'Property approved',
                          'Your property "' || v_title || '" is now live.',
                          'success', 'property', p_property_id);
    RETURN true;
END;
$$;

CREATE OR REPLACE FUNCTION reject_property_with_reason(p_property_id text, p_admin_id text, p_reason text)
RETURNS boolean LANGUAGE plpgsql AS $$
DECLARE v_title text; v_owner text;
BEGIN
    UPDATE properties
       SET status = 'rejected', published_at = NULL, approved_by = NULL,
           rejection_reason = p_reason, rejected_at = {_NOW}, rejected_by = p_admin_id, updated_at = {_NOW}
     WHERE id = p_property_id
    RETURNING title INTO v_title;
    IF NOT FOUND THEN
        RETURN false;
    END IF;
    SELECT pr.user_id INTO v_owner
      FROM properties p JOIN providers pr ON pr.id = p.provider_id WHERE p.id = p_property_id;
    PERFORM _log_admin_action(p_admin_id, 'reject', 'property', p_property_id, NULL,
                              json_build_object('title', v_title, 'reason', p_reason));
    PERFORM _notify_owner(v_owner, 'property_rejected', 'Property rejected',
                          'Your property "' || v_title || '" was rejected. Reason: ' || p_reason,
                          'error', 'property', p_property_id);
    RETURN true;
END;
$$;

CREATE OR REPLACE FUNCTION approve_architectural_plan(p_plan_id text, p_admin_id text)
RETURNS boolean LANGUAGE plpgsql AS $$
DECLARE v_title text; v_author text;
BEGIN
    UPDATE architectural_plans
       SET status = 'published', approved_by = p_admin_id, approved_at = {_NOW}, published_at = {_NOW},
           rejected_by = NULL, rejected_at = NULL, rejection_reason = NULL, updated_at = {_NOW}
     WHERE id = p_plan_id
    RETURNING title, created_by INTO v_title, v_author;
    IF NOT FOUND THEN
        RETURN false;
    END IF;
    PERFORM _log_admin_action(p_admin_id, 'approve', 'plan', p_plan_id, NULL,
                              json_build_object('title', v_title));
    PERFORM _notify_owner(v_author, 'plan_approved', 'Plan approved',
                          'Your plan "' || v_title || '" is now published.',
                          'success', 'plan', p_plan_id);
    RETURN true;
END;
$$;

CREATE OR REPLACE FUNCTION reject_architectural_plan(p_plan_id text, p_admin_id text, p_reason text)
RETURNS boolean LANGUAGE plpgsql AS $$
DECLARE v_title text; v_author text;
BEGIN
    UPDATE architectural_plans
       SET status = 'rejected', approved_by = NULL, approved_at = NULL, published_at = NULL,
           rejected_by = p_admin_id, rejected_at = {_NOW}, rejection_reason = p_reason, updated_at = {_NOW}
     WHERE id = p_plan_id
    RETURNING title, created_by INTO v_title, v_author;
    IF NOT FOUND THEN
        RETURN false;
    END IF;
    PERFORM _log_admin_action(p_admin_id, 'reject', 'plan', p_plan_id, NULL,
                              json_build_object('title', v_title, 'reason', p_reason));
    PERFORM _notify_owner(v_author, 'plan_rejected', 'Plan rejected',
                          'Your plan "' || v_title || '" was rejected. Reason: ' || p_reason,
                          'error', 'plan', p_plan_id);
    RETURN true;
END;
$$;
"""

_ANALYTICS = f"""
CREATE OR REPLACE FUNCTION update_property_analytics(p_property_id text, p_metric_type text, p_increment integer)
RETURNS void LANGUAGE plpgsql AS $$
DECLARE v_today date := ({_NOW})::date; v_id text;
BEGIN
    SELECT id INTO v_id FROM property_analytics
     WHERE property_id = p_property_id AND date = v_today FOR UPDATE;
    IF NOT FOUND THEN
        v_id := gen_random_uuid()::text;
        INSERT INTO property_analytics (id, property_id, date, views, inquiries, favorites, shares)
        VALUES (v_id, p_property_id, v_today, 0, 0, 0, 0);
    END IF;
    UPDATE property_analytics SET
        views = views + CASE WHEN p_metric_type = 'view' THEN p_increment ELSE 0 END,
        inquiries = inquiries + CASE WHEN p_metric_type = 'inquiry' THEN p_increment ELSE 0 END,
        favorites = favorites + CASE WHEN p_metric_type = 'favorite' THEN p_increment ELSE 0 END,
        shares = shares + CASE WHEN p_metric_type = 'share' THEN p_increment ELSE 0 END
     WHERE id = v_id;
END;
$$;

CREATE OR REPLACE FUNCTION track_user_activity(
    p_user_id text, p_activity_type text, p_entity_type text, p_entity_id text, p_metadata jsonb
) RETURNS void LANGUAGE plpgsql AS $$
BEGIN
    INSERT INTO user_activities (id, user_id, activity_type, entity_type, entity_id, metadata, created_at)
    VALUES (gen_random_uuid()::text, p_user_id, p_activity_type, p_entity_type, p_entity_id,
            COALESCE(p_metadata, '{{}}'::jsonb)::json, {_NOW});
END;
$$;

CREATE OR REPLACE FUNCTION track_plan_view(p_plan_id text, p_user_ip text, p_user_agent text)
RETURNS void LANGUAGE plpgsql AS $$
BEGIN
    UPDATE architectural_plans SET views = COALESCE(views, 0) + 1 WHERE id = p_plan_id;
END;
$$;

CREATE OR REPLACE FUNCTION process_plan_purchase(
    p_plan_id text, p_customer_email text, p_customer_name text, p_customer_phone text,
    p_payment_method text, p_payment_reference text
) RETURNS text LANGUAGE plpgsql AS $$
DECLARE v_id text := gen_random_uuid()::text; v_price numeric; v_discount double precision; v_currency text;
BEGIN
    SELECT price, discount_percentage, currency INTO v_price, v_discount, v_currency
      FROM architectural_plans WHERE id = p_plan_id AND status = 'published' FOR UPDATE;
    IF NOT FOUND THEN
        RAISE EXCEPTION 'Plan % not found', p_plan_id;
    END IF;
    INSERT INTO plan_purchases
        (id, plan_id, customer_email, customer_name, customer_phone, amount, currency,
         payment_method, payment_reference, status, created_at)
    VALUES
        (v_id, p_plan_id, lower(p_customer_email), p_customer_name, p_customer_phone,
         round(COALESCE(v_price, 0) * (1 - COALESCE(v_discount, 0) / 100)::numeric, 2), v_currency,
         p_payment_method, p_payment_reference, 'completed', {_NOW});
    UPDATE architectural_plans SET purchases = COALESCE(purchases, 0) + 1 WHERE id = p_plan_id;
    RETURN v_id;
END;
$$;
"""

_LAND_AND_COMMERCIAL = f"""
CREATE OR REPLACE FUNCTION create_land_property(property_data jsonb, land_data jsonb)
RETURNS text LANGUAGE plpgsql AS $$
DECLARE v_id text := gen_random_uuid()::text; v_status text := COALESCE(property_data->>'status', 'pending');
BEGIN
    INSERT INTO properties
        (id, title, description, type, category, status, price, currency, provider_id,
         views, inquiries, is_featured, approved_by, published_at, created_at, updated_at)
    VALUES
        (v_id, property_data->>'title', COALESCE(property_data->>'description', ''), 'land',
         property_data->>'category', v_status, (property_data->>'price')::numeric,
         COALESCE(property_data->>'currency', 'KSH'), property_data->>'provider_id',
         0, 0, COALESCE((property_data->>'is_featured')::boolean, false), property_data->>'approved_by',
         CASE WHEN v_status = 'published' THEN {_NOW} END, {_NOW}, {_NOW});

    IF property_data ? 'location' THEN
        INSERT INTO property_locations (id, property_id, address, city, state, country, zip_code, latitude, longitude)
        VALUES (gen_random_uuid()::text, v_id,
                COALESCE(property_data->'location'->>'address', ''),
                COALESCE(property_data->'location'->>'city', ''),
                COALESCE(property_data->'location'->>'state', ''),
                COALESCE(NULLIF(property_data->'location'->>'country', ''), 'Kenya'),
                property_data->'location'->>'zip_code',
                (property_data->'location'->>'latitude')::double precision,
                (property_data->'location'->>'longitude')::double precision);
    END IF;

    IF property_data ? 'features' THEN
        INSERT INTO property_features (id, property_id, bedrooms, bathrooms, area, area_unit, parking, furnished, pet_friendly)
        VALUES (gen_random_uuid()::text, v_id,
                (property_data->'features'->>'bedrooms')::integer,
                (property_data->'features'->>'bathrooms')::integer,
                COALESCE((property_data->'features'->>'area')::double precision, 0),
                COALESCE(property_data->'features'->>'area_unit', 'sqft'),
                (property_data->'features'->>'parking')::integer,
                COALESCE((property_data->'features'->>'furnished')::boolean, false),
                COALESCE((property_data->'features'->>'pet_friendly')::boolean, false));
    END IF;

    INSERT INTO property_amenities (id, property_id, amenity)
    SELECT gen_random_uuid()::text, v_id, a
      FROM jsonb_array_elements_text(COALESCE(property_data->'amenities', '[]'::jsonb)) AS a;
    INSERT INTO property_utilities (id, property_id, utility)
    SELECT gen_random_uuid()::text, v_id, u
      FROM jsonb_array_elements_text(COALESCE(property_data->'utilities', '[]'::jsonb)) AS u;

    INSERT INTO land_details
        (id, property_id, zoning, title_deed_available, survey_done, land_use_permit, topography,
         soil_type, road_access, distance_to_main_road_km, electricity_available,
         water_connection_available, sewer_connection_available, internet_coverage,
         development_status, subdivision_potential, agricultural_potential)
    VALUES
        (gen_random_uuid()::text, v_id, land_data->>'zoning',
         COALESCE((land_data->>'title_deed_available')::boolean, false),
         COALESCE((land_data->>'survey_done')::boolean, false),
         COALESCE((land_data->>'land_use_permit')::boolean, false),
         land_data->>'topography', land_data->>'soil_type', land_data->>'road_access',
         (land_data->>'distance_to_main_road_km')::double precision,
         COALESCE((land_data->>'electricity_available')::boolean, false),
         COALESCE((land_data->>'water_connection_available')::boolean, false),
         COALESCE((land_data->>'sewer_connection_available')::boolean, false),
         COALESCE((land_data->>'internet_coverage')::boolean, false),
         land_data->>'development_status',
         COALESCE((land_data->>'subdivision_potential')::boolean, false),
         land_data->>'agricultural_potential');

    IF property_data->>'provider_id' IS NOT NULL THEN
        UPDATE providers SET total_listings = COALESCE(total_listings, 0) + 1
         WHERE id = property_data->>'provider_id';
    END IF;
    RETURN v_id;
END;
$$;

CREATE OR REPLACE FUNCTION search_commercial_properties(
    search_query text, commercial_type_filter text, building_class_filter text, zoning_filter text,
    min_size double precision, max_size double precision, min_rent double precision,
    max_rent double precision, lease_type_filter text, min_parking integer,
    required_amenities jsonb, limit_count integer, offset_count integer
) RETURNS TABLE (
    property_id text, title text, description text, price numeric, currency text, city text,
    commercial_type text, building_class text, zoning_type text, total_building_size double precision,
    available_space double precision, rent_per_sqft double precision, lease_type text, parking_spaces integer
) LANGUAGE sql STABLE AS $$
    SELECT p.id, p.title, p.description, p.price, p.currency, l.city,
           d.commercial_type, d.building_class, d.zoning_type, d.total_building_size,
           d.available_space, d.rent_per_sqft, d.lease_type, d.parking_spaces
      FROM properties p
      JOIN commercial_property_details d ON d.property_id = p.id
      LEFT JOIN property_locations l ON l.property_id = p.id
      LEFT JOIN providers pr ON pr.id = p.provider_id
      LEFT JOIN profiles o ON o.id = pr.user_id
     WHERE p.status = 'published'
       AND (p.provider_id IS NULL OR o.deleted_at IS NULL)
       AND (search_query IS NULL OR p.title ILIKE '%' || search_query || '%'
            OR p.description ILIKE '%' || search_query || '%')
       AND (commercial_type_filter IS NULL OR d.commercial_type = commercial_type_filter)
       AND (building_class_filter IS NULL OR d.building_class = building_class_filter)
       AND (zoning_filter IS NULL OR d.zoning_type = zoning_filter)
       AND (min_size IS NULL OR d.available_space >= min_size)
       AND (max_size IS NULL OR d.available_space <= max_size)
       AND (min_rent IS NULL OR d.rent_per_sqft >= min_rent)
       AND (max_rent IS NULL OR d.rent_per_sqft <= max_rent)
       AND (lease_type_filter IS NULL OR d.lease_type = lease_type_filter)
       AND (min_parking IS NULL OR d.parking_spaces >= min_parking)
       AND (required_amenities IS NULL OR NOT EXISTS (
            SELECT 1 FROM jsonb_array_elements_text(required_amenities) AS req(name)
             WHERE NOT EXISTS (
                SELECT 1 FROM commercial_amenities a
                 WHERE a.property_id = p.id AND a.is_available AND a.amenity_name ILIKE req.name)))
     ORDER BY p.created_at DESC
     LIMIT limit_count OFFSET offset_count
$$;
"""

_FUNCTIONS = [
    "_notify_owner(text, text, text, text, text, text, text)",
    "_log_admin_action(text, text, text, text, text, json)",
    "suspend_user_with_logging(text, text, text)",
    "activate_user_with_logging(text, text)",
    "soft_delete_user_with_logging(text, text, text)",
    "approve_provider_with_notification(text, text)",
    "reject_provider_with_notification(text, text, text)",
    "approve_property_with_logging(text, text)",
    "reject_property_with_reason(text, text, text)",
    "approve_architectural_plan(text, text)",
    "reject_architectural_plan(text, text, text)",
    "update_property_analytics(text, text, integer)",
    "track_user_activity(text, text, text, text, jsonb)",
    "track_plan_view(text, text, text)",
    "process_plan_purchase(text, text, text, text, text, text)",
    "create_land_property(jsonb, jsonb)",
    "search_commercial_properties(text, text, text, text, double precision, double precision, "
    "double precision, double precision, text, integer, jsonb, integer, integer)",
]


def _is_postgres() -> bool:
    return op.get_bind().dialect.name == "postgresql"


def upgrade() -> None:
    if not _is_postgres():
        return
    op.execute('CREATE EXTENSION IF NOT EXISTS "pgcrypto"')
    for block in (_NOTIFY, _ACCOUNTS, _PROVIDERS, _LISTINGS, _ANALYTICS, _LAND_AND_COMMERCIAL):
        op.execute(block)


def downgrade() -> None:
    if not _is_postgres():
        return
    for signature in reversed(_FUNCTIONS):
        op.execute(f"DROP FUNCTION IF EXISTS {signature}")
