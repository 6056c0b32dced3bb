# Admin GraphQL：webhook 订阅相关 query / mutation

_LIST_WEBHOOKS = """
query ListWebhooks($first: Int!, $after: String){
  webhookSubscriptions(first: $first, after: $after) {
    edges {
      node {
        id
        topic
        endpoint {
          __typename
          ... on WebhookHttpEndpoint { callbackUrl }
        }
        includeFields
        metafieldNamespaces
        createdAt
        updatedAt
      }
    }
    pageInfo { hasNextPage endCursor }
  }
}
""".strip()


_CREATE_WEBHOOK = """
mutation CreateWebhook($topic: WebhookSubscriptionTopic!, $webhookSubscription: WebhookSubscriptionInput!){
  webhookSubscriptionCreate(topic: $topic, webhookSubscription: $webhookSubscription){
    userErrors { field message }
    webhookSubscription {
      id
      topic
      endpoint { __typename ... on WebhookHttpEndpoint { callbackUrl } }
      includeFields
      metafieldNamespaces
    }
  }
}
""".strip()


_DELETE_WEBHOOK = """
mutation DeleteWebhook($id: ID!){
  webhookSubscriptionDelete(id: $id){
    userErrors { field message }
    deletedWebhookSubscriptionId
  }
}
""".strip()


SHOP_PING = """
{
  shop {
    name
    myshopifyDomain
  }
}
""".strip()
