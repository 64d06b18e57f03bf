"""
Bitrix24 MCP Tools - Category Modules

Organized by functional categories following the REST API structure:
- crm: CRM entities (leads, deals, contacts, companies, quotes, invoices,
  products, activities)
- direct_api: Generic REST method invoker
"""
