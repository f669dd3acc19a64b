"""GraphQL documents used against the Admin API."""

from __future__ import annotations

PAID_ORDERS_SEARCH = "created_at:>={since} AND financial_status:paid AND status:any"

LINE_ITEM_FIELDS = """
id
quantity
discountedTotalSet { shopMoney { amount } }
product { id title vendor createdAt }
variant {
  id title sku
  selectedOptions { name value }
  product { id }
}
"""

ORDERS_PAGE = (
    """
query OrdersPage($first: Int!, $after: String, $query: String!) {
  orders(first: $first, after: $after, query: $query) {
    edges {
      cursor
      node {
        id
        createdAt
        currencyCode
        lineItems(first: 100) {
          edges { node { %s } }
          pageInfo { hasNextPage endCursor }
        }
      }
    }
    pageInfo { hasNextPage endCursor }
  }
}
"""
    % LINE_ITEM_FIELDS
)

ORDER_LINE_ITEMS = (
    """
query OrderLineItems($id: ID!, $after: String) {
  order(id: $id) {
    lineItems(first: 100, after: $after) {
      edges { node { %s } }
      pageInfo { hasNextPage endCursor }
    }
  }
}
"""
    % LINE_ITEM_FIELDS
)

ORDER_SALES_PAGE = """
query OrderSales($first: Int!, $after: String, $query: String!) {
  orders(first: $first, after: $after, query: $query, sortKey: CREATED_AT) {
    edges {
      cursor
      node {
        id
        lineItems(first: 250) {
          edges { node { quantity product { id } } }
          pageInfo { hasNextPage endCursor }
        }
      }
    }
    pageInfo { hasNextPage endCursor }
  }
}
"""

ORDER_SALES_LINE_ITEMS = """
query OrderSalesLineItems($id: ID!, $after: String) {
  order(id: $id) {
    lineItems(first: 250, after: $after) {
      edges { node { quantity product { id } } }
      pageInfo { hasNextPage endCursor }
    }
  }
}
"""

VARIANT_INVENTORY_PAGE = """
query VariantInventory($first: Int!, $after: String) {
  productVariants(first: $first, after: $after) {
    edges {
      node {
        id
        title
        sku
        price
        inventoryQuantity
        selectedOptions { name value }
        inventoryItem { tracked unitCost { amount } }
        product { id title vendor createdAt }
      }
    }
    pageInfo { hasNextPage endCursor }
  }
}
"""

COLLECTIONS_PAGE = """
query Collections($first: Int!, $after: String) {
  collections(first: $first, after: $after) {
    edges { cursor node { id title } }
    pageInfo { hasNextPage endCursor }
  }
}
"""

COLLECTION_PRODUCTS_PAGE = """
query CollectionProducts($id: ID!, $first: Int!, $after: String) {
  collection(id: $id) {
    products(first: $first, after: $after) {
      edges {
        node {
          id
          title
          variants(first: 100) {
            edges { node { availableForSale } }
          }
        }
      }
      pageInfo { hasNextPage endCursor }
    }
  }
}
"""

COLLECTION_SET_MANUAL = """
mutation CollectionManualSort($id: ID!) {
  collectionUpdate(input: {id: $id, sortOrder: MANUAL}) {
    userErrors { field message }
  }
}
"""

COLLECTION_REORDER = """
mutation CollectionReorder($id: ID!, $moves: [MoveInput!]!) {
  collectionReorderProducts(id: $id, moves: $moves) {
    job { id done }
    userErrors { field message }
  }
}
"""

JOB_STATUS = """
query JobStatus($id: ID!) {
  job(id: $id) { id done }
}
"""

COLLECTION_RULES = """
query CollectionRules($id: ID!) {
  collection(id: $id) {
    id
    metafield(namespace: "custom", key: "sort_rules") { value }
  }
}
"""

COLLECTION_RULES_SAVE = """
mutation CollectionRulesSave($id: ID!, $value: String!) {
  collectionUpdate(input: {
    id: $id,
    metafields: [{namespace: "custom", key: "sort_rules", type: "json", value: $value}]
  }) {
    userErrors { field message }
  }
}
"""

INVENTORY_BY_LOCATION = """
query InventoryByLocation($ids: [ID!]!, $names: [String!]!) {
  nodes(ids: $ids) {
    ... on ProductVariant {
      id
      inventoryItem {
        inventoryLevels(first: 100) {
          edges { node { quantities(names: $names) { name quantity } } }
        }
      }
    }
  }
}
"""

INVENTORY_AGGREGATE = """
query InventoryAggregate($ids: [ID!]!) {
  nodes(ids: $ids) {
    ... on ProductVariant { id inventoryQuantity }
  }
}
"""

PRODUCT_CREATE = """
mutation ProductCreate($input: ProductInput!) {
  productCreate(input: $input) {
    product { id handle status }
    userErrors { field message }
  }
}
"""

VARIANTS_BULK_CREATE = """
mutation VariantsBulkCreate($productId: ID!, $variants: [ProductVariantsBulkInput!]!) {
  productVariantsBulkCreate(productId: $productId, variants: $variants) {
    productVariants { id }
    userErrors { field message }
  }
}
"""

METAFIELDS_SET = """
mutation MetafieldsSet($metafields: [MetafieldsSetInput!]!) {
  metafieldsSet(metafields: $metafields) {
    metafields { id key namespace }
    userErrors { field message }
  }
}
"""

COMBINED_LISTING_UPDATE = """
mutation CombinedListingUpdate(
  $parentProductId: ID!,
  $productsAdded: [ChildProductRelationInput!],
  $optionsAndValues: [OptionAndValueInput!]
) {
  combinedListingUpdate(
    parentProductId: $parentProductId,
    productsAdded: $productsAdded,
    optionsAndValues: $optionsAndValues
  ) {
    product { id }
    userErrors { code field message }
  }
}
"""

VARIANT_SEARCH = """
query VariantSearch($query: String!, $first: Int!) {
  products(first: $first, query: $query) {
    edges {
      node {
        id
        title
        vendor
        variants(first: 50) {
          edges { node { id title sku selectedOptions { name value } } }
        }
      }
    }
  }
}
"""
