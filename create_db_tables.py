"""Database setup script - creates staging/canonical tables and merge routines."""

import asyncio

from intake.core.logging_config import configure_logging_from_settings
from intake.database.manager import create_database_manager_from_env

CREATE_TABLES_SQL = [
    """
    CREATE TABLE IF NOT EXISTS product (
        id BIGSERIAL PRIMARY KEY,
        code VARCHAR(64) NOT NULL UNIQUE,
        name VARCHAR(255) NOT NULL,
        description TEXT,
        brand VARCHAR(128),
        category VARCHAR(128),
        price NUMERIC(14, 2),
        stock INTEGER,
        warranty_months INTEGER,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS product_temp (
        id BIGSERIAL PRIMARY KEY,
        code VARCHAR(64) NOT NULL,
        name VARCHAR(255) NOT NULL,
        description TEXT,
        brand VARCHAR(128),
        category VARCHAR(128),
        price NUMERIC(14, 2),
        stock INTEGER,
        warranty_months INTEGER,
        staged_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS datasheet (
        id BIGSERIAL PRIMARY KEY,
        product_code VARCHAR(64) NOT NULL UNIQUE,
        title VARCHAR(255) NOT NULL,
        url VARCHAR(1024),
        language VARCHAR(8),
        content TEXT,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS datasheet_temp (
        id BIGSERIAL PRIMARY KEY,
        product_code VARCHAR(64) NOT NULL,
        title VARCHAR(255) NOT NULL,
        url VARCHAR(1024),
        language VARCHAR(8),
        content TEXT,
        staged_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    );
    """,
]

# Insert new keys, update changed existing keys, clear staging; one transaction.
# The latest staged row per key wins. Rows just inserted match staging exactly,
# so the update step skips them.
CREATE_ROUTINES_SQL = [
    """
    CREATE OR REPLACE FUNCTION "DebbugProductos"()
    RETURNS TABLE (rows_affected INTEGER)
    LANGUAGE plpgsql AS $$
    DECLARE
        n_inserted INTEGER := 0;
        n_updated INTEGER := 0;
    BEGIN
        INSERT INTO product (code, name, description, brand, category, price, stock, warranty_months)
        SELECT DISTINCT ON (t.code)
               t.code, t.name, t.description, t.brand, t.category, t.price, t.stock, t.warranty_months
        FROM product_temp t
        WHERE NOT EXISTS (SELECT 1 FROM product p WHERE p.code = t.code)
        ORDER BY t.code, t.id DESC;
        GET DIAGNOSTICS n_inserted = ROW_COUNT;

        UPDATE product p
        SET name = s.name,
            description = s.description,
            brand = s.brand,
            category = s.category,
            price = s.price,
            stock = s.stock,
            warranty_months = s.warranty_months,
            updated_at = NOW()
        FROM (
            SELECT DISTINCT ON (code) *
            FROM product_temp
            ORDER BY code, id DESC
        ) s
        WHERE p.code = s.code
          AND (p.name, p.description, p.brand, p.category, p.price, p.stock, p.warranty_months)
              IS DISTINCT FROM
              (s.name, s.description, s.brand, s.category, s.price, s.stock, s.warranty_months);
        GET DIAGNOSTICS n_updated = ROW_COUNT;

        DELETE FROM product_temp;

        RETURN QUERY SELECT n_inserted + n_updated;
    END;
    $$;
    """,
    """
    CREATE OR REPLACE FUNCTION "DebbugDatasheets"()
    RETURNS TABLE (rows_affected INTEGER)
    LANGUAGE plpgsql AS $$
    DECLARE
        n_inserted INTEGER := 0;
        n_updated INTEGER := 0;
    BEGIN
        INSERT INTO datasheet (product_code, title, url, language, content)
        SELECT DISTINCT ON (t.product_code)
               t.product_code, t.title, t.url, t.language, t.content
        FROM datasheet_temp t
        WHERE NOT EXISTS (SELECT 1 FROM datasheet d WHERE d.product_code = t.product_code)
        ORDER BY t.product_code, t.id DESC;
        GET DIAGNOSTICS n_inserted = ROW_COUNT;

        UPDATE datasheet d
        SET title = s.title,
            url = s.url,
            language = s.language,
            content = s.content,
            updated_at = NOW()
        FROM (
            SELECT DISTINCT ON (product_code) *
            FROM datasheet_temp
            ORDER BY product_code, id DESC
        ) s
        WHERE d.product_code = s.product_code
          AND (d.title, d.url, d.language, d.content)
              IS DISTINCT FROM (s.title, s.url, s.language, s.content);
        GET DIAGNOSTICS n_updated = ROW_COUNT;

        DELETE FROM datasheet_temp;

        RETURN QUERY SELECT n_inserted + n_updated;
    END;
    $$;
    """,
]

CREATE_INDEXES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_product_temp_code ON product_temp(code);",
    "CREATE INDEX IF NOT EXISTS idx_datasheet_temp_product_code ON datasheet_temp(product_code);",
    "CREATE INDEX IF NOT EXISTS idx_product_category ON product(category);",
]


async def setup_database():
    """Create tables, indexes and merge routines."""
    configure_logging_from_settings()
    db_manager = create_database_manager_from_env()
    print(f"🔧 Connecting to {db_manager.dsn_label}...")

    async with db_manager:
        print("✅ Connected successfully!")

        async with db_manager.transaction() as conn:
            print("\n📋 Creating tables...")
            for table_sql in CREATE_TABLES_SQL:
                await conn.execute(table_sql)
            print("✅ Tables created!")

            print("\n🔍 Creating indexes...")
            for idx_sql in CREATE_INDEXES_SQL:
                await conn.execute(idx_sql)
                print(f"  ✅ {idx_sql.split('idx_')[1].split(' ')[0]}")

            print("\n⚙️  Creating merge routines...")
            for routine_sql in CREATE_ROUTINES_SQL:
                await conn.execute(routine_sql)
            print("✅ Routines created!")

        health = await db_manager.health_check()
        print(f"\n📈 Health: {health}")

    print("\n🎉 Database setup complete!")


if __name__ == "__main__":
    asyncio.run(setup_database())
